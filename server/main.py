"""Entry point for the upload server."""

import time
import uuid
from typing import Optional

import aiofiles.os
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from common.logging_config import setup_logging
from server.config import Settings
from server.routes.upload_routes import STATUS_BY_CODE, plain_json, router as upload_router
from server.schemas.uploads import HealthResponse, UploadResponse
from storage.engine import UploadEngine
from storage.exceptions import UploadError

logger = setup_logging('server')


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application around one upload engine.

    Args:
        settings: Server settings, defaults to ``Settings.from_env()``

    Returns:
        Configured FastAPI app; the engine is available as ``app.state.engine``
    """
    if settings is None:
        settings = Settings.from_env()

    setup_logging('server', settings.log_level)
    setup_logging('storage', settings.log_level)

    app = FastAPI(
        title="Chunked Upload Server",
        description="Stores chunked uploads and reassembles them into files",
        version="1.0.0"
    )
    app.state.settings = settings
    app.state.engine = UploadEngine(settings.engine_config())

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Middleware to log all HTTP requests and responses.
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
        )

        response.headers["X-Request-ID"] = request_id
        return response

    @app.on_event("startup")
    async def startup_event():
        """
        Create the storage root on application startup.
        """
        settings.storage_path.mkdir(parents=True, exist_ok=True)
        logger.info(
            f"Upload server starting: storage={settings.storage_path} "
            f"max_file_size={settings.max_file_size or 'unlimited'} "
            f"verify_complete={settings.verify_complete}"
        )

    @app.exception_handler(UploadError)
    async def upload_error_handler(request: Request, exc: UploadError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.warning(
            f"Upload error: {exc} [request_id={request_id}] path={request.url.path}"
        )
        body = UploadResponse(
            success=False,
            error=str(exc),
            code=exc.code,
            prevent_retry=True if exc.prevent_retry else None,
        ).to_body()
        return plain_json(
            body, STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        )

    app.include_router(upload_router)

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """
        Health check endpoint. Returns 200 if service is alive.
        """
        return HealthResponse(status="healthy", service="upload-server")

    @app.get("/")
    async def root():
        """
        Serve the upload page when a public directory provides one.
        """
        index = settings.public_dir / "index.html"
        if await aiofiles.os.path.isfile(index):
            return FileResponse(index)
        return {"message": "Chunked Upload Server", "status": "running"}

    if settings.public_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.public_dir), name="static")

    return app


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
