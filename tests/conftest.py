"""Shared pytest fixtures for all tests."""

import io

import pytest

from storage.config import EngineConfig
from storage.engine import UploadEngine
from storage.layout import StorageLayout


class ByteStream:
    """In-memory payload exposing the async ``read(size)`` of an uploaded file."""

    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)


class FailingStream:
    """Payload that yields ``data`` and then fails like a dropped connection."""

    def __init__(self, data: bytes = b"partial"):
        self._data = data
        self._sent = False

    async def read(self, size: int = -1) -> bytes:
        if not self._sent:
            self._sent = True
            return self._data
        raise OSError("connection reset by peer")


@pytest.fixture
def storage_root(tmp_path):
    """
    Empty storage root for one test.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to a not yet created uploads directory
    """
    return tmp_path / 'uploads'


@pytest.fixture
def layout(storage_root):
    return StorageLayout(storage_root)


@pytest.fixture
def engine(storage_root):
    """Engine with default settings: unlimited size, completion verified."""
    return UploadEngine(EngineConfig(storage_root=storage_root))


@pytest.fixture
def stream():
    """Factory building an async payload from bytes."""
    return ByteStream


@pytest.fixture
def failing_stream():
    """Factory building a payload that fails after its first piece."""
    return FailingStream
