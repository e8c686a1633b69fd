"""Async filesystem helpers: streamed atomic writes, directory listing, tree removal."""

import asyncio
import logging
import shutil
import uuid
from pathlib import Path
from typing import List

import aiofiles
import aiofiles.os

from common.constants import PARTIAL_SUFFIX, STREAM_PIECE_SIZE_BYTES
from storage.layout import is_partial
from storage.types import AsyncReadable

logger = logging.getLogger(__name__)


def partial_path(target: Path) -> Path:
    """
    Hidden, unique sibling of ``target`` used while its content is being written.

    Args:
        target: Final location of the file

    Returns:
        Path of the temporary file in the same directory
    """
    return target.with_name(f".{target.name}.{uuid.uuid4().hex}{PARTIAL_SUFFIX}")


async def discard(path: Path) -> None:
    """Remove a temporary file, ignoring a file that is already gone."""
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temporary file {path}: {e}")


async def write_stream_atomically(
    target: Path,
    stream: AsyncReadable,
    piece_size: int = STREAM_PIECE_SIZE_BYTES
) -> int:
    """
    Stream ``stream`` into ``target`` without buffering it whole.

    Bytes go to a temporary sibling that is renamed onto ``target`` only once
    the stream is exhausted, so ``target`` never holds a partial write.

    Args:
        target: Destination path (its directory must exist)
        stream: Source exposing ``await read(size)``
        piece_size: Bytes read per iteration

    Returns:
        Number of bytes written

    Raises:
        OSError: If writing or renaming fails
        Exception: Whatever the source stream raises while being read
    """
    temp_path = partial_path(target)
    written = 0

    try:
        async with aiofiles.open(temp_path, 'wb') as out:
            while True:
                piece = await stream.read(piece_size)
                if not piece:
                    break
                await out.write(piece)
                written += len(piece)
        await aiofiles.os.replace(temp_path, target)
    except BaseException:
        await discard(temp_path)
        raise

    return written


async def append_file(destination, source: Path, piece_size: int = STREAM_PIECE_SIZE_BYTES) -> int:
    """
    Append the content of ``source`` to an open aiofiles ``destination``.

    Args:
        destination: Open aiofiles binary handle
        source: File to copy from
        piece_size: Bytes read per iteration

    Returns:
        Number of bytes appended
    """
    appended = 0
    async with aiofiles.open(source, 'rb') as src:
        while True:
            piece = await src.read(piece_size)
            if not piece:
                break
            await destination.write(piece)
            appended += len(piece)
    return appended


async def list_committed(directory: Path) -> List[str]:
    """
    List the fully written entries of ``directory`` sorted by name.

    Args:
        directory: Directory to list

    Returns:
        Sorted entry names without in-flight temporary files,
        or an empty list if the directory does not exist
    """
    try:
        names = await aiofiles.os.listdir(directory)
    except FileNotFoundError:
        return []
    return sorted(name for name in names if not is_partial(name))


async def remove_tree(path: Path) -> None:
    """
    Recursively delete ``path`` off the event loop.

    Raises:
        FileNotFoundError: If ``path`` does not exist
        OSError: If removal fails
    """
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, shutil.rmtree, path)
