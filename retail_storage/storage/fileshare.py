"""
Hierarchical file store on a mounted file share.

This module stores contract documents under <root>/<share>/<directory>/ with
async file operations. In deployment the root is the mount point of the
storage account's file share.
"""
import os
from pathlib import Path

import aiofiles

from retail_storage.models import FileSource
from retail_storage.storage.exceptions import FileNotFoundError
from retail_storage.utils.ids import document_blob_name

# Stream files in 64KB chunks
CHUNK_SIZE = 64 * 1024


class LocalFileShare:
    """
    File shares rooted at a local (mounted) directory.

    Structure: <base_path>/<share>/<directory path>/<YYYYMMDD_HHMMSS>_<name>
    """

    def __init__(self, base_path: str):
        """
        Initialize the file share store.

        Args:
            base_path: Mount point holding one directory per share
        """
        self.base_path = Path(base_path)

    def _resolve(self, share: str, directory: str = "", file_name: str = "") -> Path:
        """
        Resolve a share-relative path, refusing to leave the share.

        Raises:
            ValueError: If the path escapes the share directory
        """
        root = self.base_path.resolve()
        share_root = (root / share).resolve()
        if share_root == root or not share_root.is_relative_to(root):
            raise ValueError(f"Invalid file share name: {share!r}")

        target = share_root.joinpath(*[part for part in (directory, file_name) if part]).resolve()
        if not target.is_relative_to(share_root):
            raise ValueError(f"Path escapes file share '{share}': {directory}/{file_name}")
        return target

    async def create_directory(self, share: str, directory: str = "") -> None:
        """Create a share and, optionally, a directory inside it."""
        self._resolve(share, directory).mkdir(parents=True, exist_ok=True)

    async def upload(self, file: FileSource, share: str, directory: str = "") -> str:
        """
        Stream a file into a share directory.

        Args:
            file: Uploaded file
            share: Share name
            directory: Directory path inside the share ("" for the root)

        Returns:
            Stored file name (timestamp-prefixed)
        """
        file_name = document_blob_name(file.filename)
        file_path = self._resolve(share, directory, file_name)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with aiofiles.open(file_path, "wb") as f:
                while True:
                    chunk = await file.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    await f.write(chunk)
        except OSError:
            # Clean up partial file on error
            if os.path.exists(file_path):
                os.remove(file_path)
            raise

        return file_name

    async def download(self, share: str, file_name: str, directory: str = "") -> bytes:
        """
        Read a file from a share directory.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        file_path = self._resolve(share, directory, file_name)

        if not file_path.is_file():
            raise FileNotFoundError(f"{share}/{directory}/{file_name}" if directory else f"{share}/{file_name}")

        async with aiofiles.open(file_path, "rb") as f:
            return await f.read()
