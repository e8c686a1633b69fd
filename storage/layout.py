"""Path conventions shared by the chunk store, reassembler and deletion service."""

from pathlib import Path
from typing import List

from common.constants import DEFAULT_CHUNK_DIR_NAME, PARTIAL_SUFFIX
from storage.exceptions import InvalidIdentifierError

_FORBIDDEN_SEGMENT_CHARS = ("/", "\\", "\x00")


def validate_identifier(identifier: str) -> str:
    """
    Ensure an upload identifier is usable as a single path segment.

    Args:
        identifier: Client-supplied upload identifier

    Returns:
        The identifier, unchanged

    Raises:
        InvalidIdentifierError: If the identifier is empty, a dot segment,
            or contains a path separator
    """
    if not identifier or identifier in (".", ".."):
        raise InvalidIdentifierError(f"Invalid upload identifier: {identifier!r}")
    if any(char in identifier for char in _FORBIDDEN_SEGMENT_CHARS):
        raise InvalidIdentifierError(f"Invalid upload identifier: {identifier!r}")
    return identifier


def safe_filename(filename: str) -> str:
    """
    Reduce a client-supplied filename to its base name.

    Args:
        filename: Original filename as sent by the client

    Returns:
        Base name without any directory components

    Raises:
        InvalidIdentifierError: If nothing usable is left
    """
    name = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if not name or name in (".", "..") or "\x00" in name:
        raise InvalidIdentifierError(f"Invalid filename: {filename!r}")
    return name


def chunk_digits(total_parts: int) -> int:
    """Number of digits used to name the chunks of an upload with ``total_parts`` parts."""
    return len(str(total_parts))


def chunk_filename(part_index: int, total_parts: int) -> str:
    """
    Zero-pad a part index to the digit width of the total part count.

    With 120 parts the names run "000".."119", so lexicographic order
    equals numeric order.
    """
    return str(part_index).zfill(chunk_digits(total_parts))


def is_partial(name: str) -> bool:
    """True for in-flight temporary files that must never be treated as chunks."""
    return name.startswith(".") or name.endswith(PARTIAL_SUFFIX)


class StorageLayout:
    """
    Resolves every on-disk location under the storage root.

    ``root/<identifier>/`` holds the final file, ``root/<identifier>/<chunk_dir_name>/``
    holds staged chunks until reassembly.
    """

    def __init__(self, root: Path, chunk_dir_name: str = DEFAULT_CHUNK_DIR_NAME):
        self.root = Path(root)
        self.chunk_dir_name = chunk_dir_name

    def upload_dir(self, identifier: str) -> Path:
        return self.root / validate_identifier(identifier)

    def staging_dir(self, identifier: str) -> Path:
        return self.upload_dir(identifier) / self.chunk_dir_name

    def chunk_path(self, identifier: str, part_index: int, total_parts: int) -> Path:
        return self.staging_dir(identifier) / chunk_filename(part_index, total_parts)

    def final_path(self, identifier: str, filename: str) -> Path:
        name = safe_filename(filename)
        # the final file shares its directory with the staging area
        if name == self.chunk_dir_name:
            raise InvalidIdentifierError(f"Filename collides with staging directory: {filename!r}")
        return self.upload_dir(identifier) / name

    def expected_chunk_names(self, total_parts: int) -> List[str]:
        """Every chunk name an upload with ``total_parts`` parts is made of, in order."""
        return [chunk_filename(index, total_parts) for index in range(total_parts)]
