"""Upload API routes (Fine Uploader traditional endpoint protocol)."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.datastructures import FormData, UploadFile

from server.schemas.uploads import UploadResponse
from storage.engine import UploadEngine
from storage.exceptions import (
    FileTooLargeError,
    InvalidChunkError,
    InvalidIdentifierError,
)
from storage.layout import validate_identifier
from storage.types import ChunkDescriptor, UploadOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["Uploads"])

STATUS_BY_CODE = {
    FileTooLargeError.code: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    InvalidIdentifierError.code: status.HTTP_400_BAD_REQUEST,
    InvalidChunkError.code: status.HTTP_400_BAD_REQUEST,
}


def get_engine(request: Request) -> UploadEngine:
    return request.app.state.engine


def plain_json(body: dict, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """
    JSON body served as text/plain, which older browsers need for iframe uploads.
    """
    return JSONResponse(content=body, status_code=status_code, media_type="text/plain")


def outcome_response(outcome: UploadOutcome) -> JSONResponse:
    if outcome.success:
        status_code = status.HTTP_200_OK
    else:
        status_code = STATUS_BY_CODE.get(outcome.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return plain_json(UploadResponse.from_outcome(outcome).to_body(), status_code)


def _text_field(form: FormData, name: str) -> Optional[str]:
    value = form.get(name)
    if value is None or isinstance(value, UploadFile):
        return None
    value = value.strip()
    return value or None


def _int_field(form: FormData, name: str, default: Optional[int] = None) -> int:
    value = _text_field(form, name)
    if value is None:
        if default is None:
            raise InvalidChunkError(f"Missing form field {name}")
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidChunkError(f"Form field {name} must be an integer, got {value!r}")


@router.post("")
async def upload_file(request: Request, engine: UploadEngine = Depends(get_engine)):
    """
    Receive one chunk of a chunked upload, or a whole file.

    Form fields:
        - qquuid: Upload identifier
        - qqfilename: Original filename
        - qqtotalfilesize: Declared total size in bytes
        - qqpartindex / qqtotalparts: Chunk position (absent for non-chunked uploads)
        - <FILE_INPUT_NAME>: The chunk or file content

    Returns:
        - success, and on failure error, code and preventRetry

    Status:
        - 200: Stored
        - 400: Malformed request (preventRetry)
        - 413: Declared size over the limit (preventRetry)
        - 500: Storage failure (retryable)
    """
    file_input_name = request.app.state.settings.file_input_name

    async with request.form() as form:
        upload = form.get(file_input_name)
        if not isinstance(upload, UploadFile):
            raise InvalidChunkError(f"Missing file field {file_input_name}")

        identifier = _text_field(form, "qquuid")
        if identifier is None:
            raise InvalidIdentifierError("Missing form field qquuid")
        validate_identifier(identifier)

        filename = _text_field(form, "qqfilename") or upload.filename
        if not filename:
            raise InvalidChunkError("Missing form field qqfilename")

        if _text_field(form, "qqpartindex") is None:
            total_size = _int_field(form, "qqtotalfilesize", default=upload.size or 0)
            outcome = await engine.handle_simple_upload(identifier, filename, total_size, upload)
        else:
            descriptor = ChunkDescriptor(
                identifier=identifier,
                part_index=_int_field(form, "qqpartindex"),
                total_parts=_int_field(form, "qqtotalparts"),
                total_size=_int_field(form, "qqtotalfilesize"),
                filename=filename,
            )
            outcome = await engine.handle_upload_chunk(descriptor, upload)

    return outcome_response(outcome)


@router.delete("/{uuid}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(uuid: str, engine: UploadEngine = Depends(get_engine)):
    """
    Delete an upload: staged chunks, final file, or both.

    Status:
        - 204: Deleted, or nothing to delete
        - 400: Unsafe identifier
        - 500: Storage could not be removed
    """
    validate_identifier(uuid)

    outcome = await engine.handle_delete(uuid)
    if not outcome.success:
        logger.error(f"Problem deleting file! {uuid}: {outcome.error}")
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return Response(status_code=status.HTTP_204_NO_CONTENT)
