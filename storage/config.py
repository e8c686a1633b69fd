"""Configuration of one upload engine instance."""

from dataclasses import dataclass
from pathlib import Path

from common.constants import DEFAULT_CHUNK_DIR_NAME, STREAM_PIECE_SIZE_BYTES


@dataclass(frozen=True)
class EngineConfig:
    """
    Explicit engine settings; several engines with different settings may coexist.

    Attributes:
        storage_root: Directory holding one sub-directory per upload
        max_file_size: Maximum declared total size in bytes, 0 for unlimited
        chunk_dir_name: Name of the staging sub-directory inside an upload directory
        verify_complete: Combine only once every part is staged (True), or as soon
            as the last-index part is stored (False)
        piece_size: Bytes moved per read/write while streaming
    """
    storage_root: Path
    max_file_size: int = 0
    chunk_dir_name: str = DEFAULT_CHUNK_DIR_NAME
    verify_complete: bool = True
    piece_size: int = STREAM_PIECE_SIZE_BYTES
