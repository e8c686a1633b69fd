"""Configuration settings for the upload server."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from common.constants import (
    DEFAULT_CHUNK_DIR_NAME,
    DEFAULT_FILE_INPUT_NAME,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_PUBLIC_DIR,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    DEFAULT_STORAGE_PATH,
)
from storage.config import EngineConfig

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """
    Server settings, read once from the environment.

    Attributes:
        storage_path: Root directory for uploads (UPLOAD_STORAGE_PATH)
        max_file_size: Maximum declared upload size in bytes, 0 = unlimited (MAX_FILE_SIZE)
        host: Bind address (SERVER_HOST)
        port: Listening port (SERVER_PORT)
        file_input_name: Multipart field carrying the file (FILE_INPUT_NAME)
        public_dir: Directory served as static assets (PUBLIC_DIR)
        chunk_dir_name: Staging sub-directory name (CHUNK_DIR_NAME)
        verify_complete: Combine only when every part is staged (VERIFY_COMPLETE)
        log_level: Logging level name (LOG_LEVEL)
    """
    storage_path: Path = Path(DEFAULT_STORAGE_PATH)
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    host: str = DEFAULT_SERVER_HOST
    port: int = DEFAULT_SERVER_PORT
    file_input_name: str = DEFAULT_FILE_INPUT_NAME
    public_dir: Path = Path(DEFAULT_PUBLIC_DIR)
    chunk_dir_name: str = DEFAULT_CHUNK_DIR_NAME
    verify_complete: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from, defaults to ``os.environ``

        Returns:
            Settings instance

        Raises:
            ValueError: If a numeric variable is not an integer or MAX_FILE_SIZE is negative
        """
        env = os.environ if environ is None else environ

        max_file_size = int(env.get("MAX_FILE_SIZE", str(DEFAULT_MAX_FILE_SIZE)))
        if max_file_size < 0:
            raise ValueError(f"MAX_FILE_SIZE must be >= 0, got {max_file_size}")

        return cls(
            storage_path=Path(env.get("UPLOAD_STORAGE_PATH", DEFAULT_STORAGE_PATH)),
            max_file_size=max_file_size,
            host=env.get("SERVER_HOST", DEFAULT_SERVER_HOST),
            port=int(env.get("SERVER_PORT", str(DEFAULT_SERVER_PORT))),
            file_input_name=env.get("FILE_INPUT_NAME", DEFAULT_FILE_INPUT_NAME),
            public_dir=Path(env.get("PUBLIC_DIR", DEFAULT_PUBLIC_DIR)),
            chunk_dir_name=env.get("CHUNK_DIR_NAME", DEFAULT_CHUNK_DIR_NAME),
            verify_complete=env.get("VERIFY_COMPLETE", "true").strip().lower() in _TRUE_VALUES,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            storage_root=self.storage_path,
            max_file_size=self.max_file_size,
            chunk_dir_name=self.chunk_dir_name,
            verify_complete=self.verify_complete,
        )
