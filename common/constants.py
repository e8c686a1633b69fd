"""Project-wide constants (default limits, paths, form field names)."""

DEFAULT_MAX_FILE_SIZE: int = 0  # bytes, 0 means unlimited
DEFAULT_STORAGE_PATH: str = "tmp"
DEFAULT_PUBLIC_DIR: str = "_build"
DEFAULT_CHUNK_DIR_NAME: str = "chunks"

DEFAULT_SERVER_HOST: str = "0.0.0.0"
DEFAULT_SERVER_PORT: int = 8000

DEFAULT_FILE_INPUT_NAME: str = "qqfile"

STREAM_PIECE_SIZE_BYTES: int = 64 * 1024  # 64 KiB per read/write while streaming

PARTIAL_SUFFIX: str = ".partial"
