"""Removes every artifact of an upload: staged chunks, final file, temporaries."""

import logging

import aiofiles.os

from storage.exceptions import DeletionError
from storage.fileio import remove_tree
from storage.layout import StorageLayout

logger = logging.getLogger(__name__)


class DeletionService:
    def __init__(self, layout: StorageLayout):
        self.layout = layout

    async def delete_all(self, identifier: str) -> bool:
        """
        Recursively remove ``root/<identifier>``.

        Deleting an identifier that has no storage is a no-op.

        Args:
            identifier: Upload identifier

        Returns:
            True if something was removed, False if nothing existed

        Raises:
            DeletionError: If the tree exists but could not be removed
        """
        upload_dir = self.layout.upload_dir(identifier)

        if not await aiofiles.os.path.exists(upload_dir):
            return False

        try:
            await remove_tree(upload_dir)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Problem deleting file! {identifier}: {e}")
            raise DeletionError(f"Problem deleting upload {identifier}: {e}") from e

        logger.info(f"Deleted upload {identifier}")
        return True
