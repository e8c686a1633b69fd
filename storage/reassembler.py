"""Concatenates staged chunks into the final file once an upload is complete."""

import logging
from pathlib import Path
from typing import Optional, Sequence

import aiofiles
import aiofiles.os

from common.constants import STREAM_PIECE_SIZE_BYTES
from storage.exceptions import ReassemblyError
from storage.fileio import append_file, discard, list_committed, partial_path, remove_tree
from storage.layout import StorageLayout

logger = logging.getLogger(__name__)


class Reassembler:
    """
    Streams every staged chunk of an upload, in name order, into one file.
    """

    def __init__(self, layout: StorageLayout, piece_size: int = STREAM_PIECE_SIZE_BYTES):
        self.layout = layout
        self.piece_size = piece_size

    async def combine(
        self,
        identifier: str,
        filename: str,
        chunk_names: Optional[Sequence[str]] = None
    ) -> Path:
        """
        Reassemble an upload and remove its staging area.

        Chunks are read strictly one at a time in sorted name order, which is
        ascending part-index order thanks to fixed-width zero padding. The
        output is built in a temporary sibling and renamed onto the final path
        only after the last chunk was appended.

        Args:
            identifier: Upload identifier
            filename: Original filename of the upload
            chunk_names: Chunks to concatenate; defaults to every committed
                chunk present in the staging area

        Returns:
            Path of the final file

        Raises:
            ReassemblyError: If no chunk is staged or reading/writing fails.
                The staging area is left intact.
        """
        staging_dir = self.layout.staging_dir(identifier)
        destination = self.layout.final_path(identifier, filename)

        names = sorted(chunk_names) if chunk_names is not None else await list_committed(staging_dir)
        if not names:
            raise ReassemblyError(f"No chunks staged for upload {identifier}")

        logger.info(f"Combining {len(names)} chunks of {identifier} into {destination.name}")

        temp_path = partial_path(destination)
        total = 0
        try:
            async with aiofiles.open(temp_path, 'ab') as out:
                for name in names:
                    total += await append_file(out, staging_dir / name, self.piece_size)
            await aiofiles.os.replace(temp_path, destination)
        except OSError as e:
            await discard(temp_path)
            logger.error(f"Problem appending chunks of {identifier}: {e}")
            raise ReassemblyError(f"Problem appending chunk! {e}") from e
        except BaseException:
            await discard(temp_path)
            raise

        try:
            await remove_tree(staging_dir)
        except OSError as e:
            # the final file is complete; leftovers go with the next delete
            logger.error(f"Failed to remove staging area of {identifier}: {e}")

        logger.info(f"Combined {identifier} into {destination.name} ({total} bytes)")
        return destination
