"""Upload engine: the boundary the HTTP layer hands decoded requests to."""

from pathlib import Path
from typing import Optional

import aiofiles.os

from common.logging_config import get_logger
from storage.chunk_store import ChunkStore
from storage.config import EngineConfig
from storage.deletion import DeletionService
from storage.exceptions import FileTooLargeError, InvalidChunkError, UploadError
from storage.layout import StorageLayout, validate_identifier
from storage.locks import KeyedLock
from storage.reassembler import Reassembler
from storage.size_validator import SizeValidator
from storage.types import AsyncReadable, ChunkDescriptor, DeleteOutcome, UploadOutcome


class UploadEngine:
    """
    Stores chunks, detects completion, reassembles and deletes uploads.

    All durable state lives under ``config.storage_root``. The only in-memory
    state is the per-identifier lock map, which is empty between requests.
    """

    def __init__(self, config: EngineConfig):
        self.config = config
        self.layout = StorageLayout(config.storage_root, config.chunk_dir_name)
        self.size_validator = SizeValidator(config.max_file_size)
        self.chunk_store = ChunkStore(self.layout, config.piece_size)
        self.reassembler = Reassembler(self.layout, config.piece_size)
        self.deletion_service = DeletionService(self.layout)
        self.locks = KeyedLock()

    async def handle_upload_chunk(
        self,
        descriptor: ChunkDescriptor,
        stream: AsyncReadable
    ) -> UploadOutcome:
        """
        Store one chunk and reassemble the upload if it is now complete.

        Args:
            descriptor: Placement metadata of the chunk
            stream: Chunk payload

        Returns:
            UploadOutcome; ``complete`` is set when this call produced the final file
        """
        identifier = descriptor.identifier
        logger = get_logger(__name__, identifier)

        try:
            validate_identifier(identifier)
            self._check_size(descriptor.total_size)
            self.layout.final_path(identifier, descriptor.filename)

            await self.chunk_store.store(
                identifier, descriptor.part_index, descriptor.total_parts, stream
            )

            async with self.locks.acquire(identifier):
                chunk_names = await self._ready_chunks(descriptor)
                if chunk_names is None:
                    return UploadOutcome(success=True)
                path = await self.reassembler.combine(identifier, descriptor.filename, chunk_names)

        except UploadError as e:
            if e.prevent_retry:
                logger.warning(f"Rejected chunk {descriptor.part_index}: {e}")
            else:
                logger.error(f"Chunk {descriptor.part_index} failed: {e}")
            return UploadOutcome(
                success=False, error=str(e), code=e.code, prevent_retry=e.prevent_retry
            )

        logger.info(f"Upload complete: {path.name}")
        return UploadOutcome(success=True, complete=True, path=path)

    async def handle_simple_upload(
        self,
        identifier: str,
        filename: str,
        total_size: int,
        stream: AsyncReadable
    ) -> UploadOutcome:
        """
        Store a non-chunked upload directly as the final file.

        Args:
            identifier: Upload identifier
            filename: Original filename
            total_size: Size of the file in bytes
            stream: File payload

        Returns:
            UploadOutcome with ``complete`` set on success
        """
        logger = get_logger(__name__, identifier)

        try:
            validate_identifier(identifier)
            self._check_size(total_size)
            path = await self.chunk_store.store_single(identifier, filename, stream)
        except UploadError as e:
            logger.warning(f"Simple upload failed: {e}")
            return UploadOutcome(
                success=False, error=str(e), code=e.code, prevent_retry=e.prevent_retry
            )

        logger.info(f"Upload complete: {path.name}")
        return UploadOutcome(success=True, complete=True, path=path)

    async def handle_delete(self, identifier: str) -> DeleteOutcome:
        """
        Delete every artifact of an upload, whatever its completion state.

        Args:
            identifier: Upload identifier

        Returns:
            DeleteOutcome; success also when nothing existed
        """
        logger = get_logger(__name__, identifier)

        try:
            validate_identifier(identifier)
            async with self.locks.acquire(identifier):
                removed = await self.deletion_service.delete_all(identifier)
        except UploadError as e:
            logger.error(f"Delete failed: {e}")
            return DeleteOutcome(success=False, error=str(e))

        return DeleteOutcome(success=True, removed=removed)

    def final_path(self, identifier: str, filename: str) -> Path:
        return self.layout.final_path(identifier, filename)

    def _check_size(self, total_size: int) -> None:
        if not self.size_validator.is_valid(total_size):
            raise FileTooLargeError(
                f"Too big! Declared size {total_size} exceeds the limit of "
                f"{self.config.max_file_size} bytes"
            )

    async def _ready_chunks(self, descriptor: ChunkDescriptor) -> Optional[list[str]]:
        """
        Decide whether the upload can be combined now.

        With ``verify_complete`` off, the last-index chunk triggers the combine.
        A retry of that chunk after the upload was already combined finds the
        final file in place and only its own chunk staged; it is dropped
        instead of replacing the final file.

        Returns:
            Chunk names to concatenate, or None if the upload is not complete
        """
        if not self.config.verify_complete:
            if not descriptor.is_last_part:
                return None
            present = await self.chunk_store.list_chunks(descriptor.identifier)
            if await self._is_retry_after_combine(descriptor, present):
                get_logger(__name__, descriptor.identifier).info(
                    "Last chunk received again after reassembly, keeping the final file"
                )
                await self.chunk_store.discard_staging(descriptor.identifier)
                return None
            return present

        present = await self.chunk_store.list_chunks(descriptor.identifier)
        expected = self.layout.expected_chunk_names(descriptor.total_parts)

        unexpected = set(present) - set(expected)
        if unexpected:
            raise InvalidChunkError(
                f"Staging area holds chunks not matching {descriptor.total_parts} parts: "
                f"{sorted(unexpected)}"
            )
        if len(present) < len(expected):
            return None
        return expected

    async def _is_retry_after_combine(self, descriptor: ChunkDescriptor, present: list[str]) -> bool:
        if descriptor.total_parts == 1:
            return False
        last_name = self.layout.expected_chunk_names(descriptor.total_parts)[-1]
        if present != [last_name]:
            return False
        final = self.layout.final_path(descriptor.identifier, descriptor.filename)
        return await aiofiles.os.path.exists(final)
