"""Shared data type definitions (ChunkDescriptor, UploadOutcome, DeleteOutcome)."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol


class AsyncReadable(Protocol):
    """Anything exposing ``await read(size)``: UploadFile, aiofiles handles, test streams."""

    async def read(self, size: int = -1) -> bytes:
        ...


@dataclass(frozen=True)
class ChunkDescriptor:
    """
    Placement metadata carried by one chunk request.
    """
    identifier: str
    part_index: int
    total_parts: int
    total_size: int
    filename: str

    @property
    def is_last_part(self) -> bool:
        return self.part_index == self.total_parts - 1


@dataclass(frozen=True)
class UploadOutcome:
    """
    Result of storing one chunk or one simple upload.

    ``complete`` is True only for the call that produced the final file.
    """
    success: bool
    error: Optional[str] = None
    code: Optional[str] = None
    prevent_retry: bool = False
    complete: bool = False
    path: Optional[Path] = None


@dataclass(frozen=True)
class DeleteOutcome:
    """
    Result of deleting every artifact of one upload.
    """
    success: bool
    removed: bool = False
    error: Optional[str] = None
