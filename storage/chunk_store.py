"""Writes uploaded chunks to the per-upload staging area."""

import logging
from pathlib import Path
from typing import List

import aiofiles.os

from common.constants import STREAM_PIECE_SIZE_BYTES
from storage.exceptions import ChunkStoreError, InvalidChunkError
from storage.fileio import list_committed, remove_tree, write_stream_atomically
from storage.layout import StorageLayout
from storage.types import AsyncReadable

logger = logging.getLogger(__name__)


class ChunkStore:
    """
    Places chunk payloads under ``root/<identifier>/<chunk_dir_name>/<padded index>``.
    """

    def __init__(self, layout: StorageLayout, piece_size: int = STREAM_PIECE_SIZE_BYTES):
        self.layout = layout
        self.piece_size = piece_size

    async def store(
        self,
        identifier: str,
        part_index: int,
        total_parts: int,
        stream: AsyncReadable
    ) -> Path:
        """
        Stream one chunk into the staging area.

        Concurrent calls for the same identifier are safe: directory creation is
        idempotent and each part index has its own file. Storing an index again
        replaces the earlier file atomically.

        Args:
            identifier: Upload identifier
            part_index: Zero-based index of this chunk
            total_parts: Number of chunks in the upload
            stream: Chunk payload

        Returns:
            Path of the stored chunk file

        Raises:
            InvalidChunkError: If the index is outside ``0..total_parts-1``
            ChunkStoreError: If the chunk could not be written
        """
        if total_parts < 1:
            raise InvalidChunkError(f"Upload must have at least one part, got {total_parts}")
        if not 0 <= part_index < total_parts:
            raise InvalidChunkError(
                f"Part index {part_index} is out of range (0-{total_parts - 1})"
            )

        staging_dir = self.layout.staging_dir(identifier)
        target = self.layout.chunk_path(identifier, part_index, total_parts)

        try:
            await aiofiles.os.makedirs(staging_dir, exist_ok=True)
            size = await write_stream_atomically(target, stream, self.piece_size)
        except Exception as e:
            logger.error(f"Failed to store chunk {part_index}/{total_parts} of {identifier}: {e}")
            raise ChunkStoreError(f"Problem storing chunk {part_index}: {e}") from e

        logger.debug(f"Stored chunk {target.name} of {identifier} ({size} bytes)")
        return target

    async def store_single(self, identifier: str, filename: str, stream: AsyncReadable) -> Path:
        """
        Stream a non-chunked upload straight to its final location.

        Args:
            identifier: Upload identifier
            filename: Original filename
            stream: File payload

        Returns:
            Path of the final file

        Raises:
            ChunkStoreError: If the file could not be written
        """
        target = self.layout.final_path(identifier, filename)

        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            size = await write_stream_atomically(target, stream, self.piece_size)
        except Exception as e:
            logger.error(f"Failed to store file {filename} of {identifier}: {e}")
            raise ChunkStoreError(f"Problem storing file: {e}") from e

        logger.debug(f"Stored file {target.name} of {identifier} ({size} bytes)")
        return target

    async def list_chunks(self, identifier: str) -> List[str]:
        """Sorted names of every fully written chunk of an upload."""
        return await list_committed(self.layout.staging_dir(identifier))

    async def missing_parts(self, identifier: str, total_parts: int) -> List[int]:
        """
        Part indices whose chunk has not been stored yet.

        Args:
            identifier: Upload identifier
            total_parts: Number of chunks in the upload

        Returns:
            Ascending list of missing indices (empty when the upload is complete)
        """
        present = set(await self.list_chunks(identifier))
        expected = self.layout.expected_chunk_names(total_parts)
        return [index for index, name in enumerate(expected) if name not in present]

    async def discard_staging(self, identifier: str) -> None:
        """
        Remove the staging area of an upload, if any.

        Raises:
            ChunkStoreError: If the staging area exists but could not be removed
        """
        try:
            await remove_tree(self.layout.staging_dir(identifier))
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error(f"Failed to remove staging area of {identifier}: {e}")
            raise ChunkStoreError(f"Problem removing staged chunks: {e}") from e
