"""Local filesystem object store: buckets are directories, objects are files.

Objects are served by the app under ``/uploads/<bucket>/<key>``.
"""

import logging
import os
import re
from pathlib import Path
from typing import List

from src.shared.config import get_settings

# Bucket and key names must be plain file names (no separators, no dot-dot)
SAFE_NAME = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]{0,199}$')


class ObjectStoreError(Exception):
    """Raised when an object cannot be written, listed or removed."""


class LocalObjectStore:
    """Stores bytes on disk and hands back public URLs."""

    def __init__(self, root: Path, public_base_url: str = "", url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.url_prefix = url_prefix

    def _object_path(self, bucket: str, key: str) -> Path:
        if not SAFE_NAME.match(bucket) or not SAFE_NAME.match(key) or ".." in key:
            raise ObjectStoreError(f"Invalid object name: {bucket}/{key}")
        return self.root / bucket / key

    def url_for(self, bucket: str, key: str) -> str:
        return f"{self.public_base_url}{self.url_prefix}/{bucket}/{key}"

    def put(self, bucket: str, key: str, data: bytes) -> str:
        """Write the object and return its public URL. Never overwrites."""
        path = self._object_path(bucket, key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # "x" mode fails if the key is already taken
            with open(path, "xb") as f:
                f.write(data)
        except OSError as e:
            logging.error(f"Failed to store object {bucket}/{key}: {str(e)}", exc_info=True)
            raise ObjectStoreError(str(e)) from e
        return self.url_for(bucket, key)

    def list_keys(self, bucket: str) -> List[str]:
        """Keys in the bucket, sorted by name (keys start with an upload timestamp)."""
        if not SAFE_NAME.match(bucket):
            raise ObjectStoreError(f"Invalid bucket name: {bucket}")
        directory = self.root / bucket
        if not directory.is_dir():
            return []
        try:
            return sorted(entry.name for entry in directory.iterdir() if entry.is_file())
        except OSError as e:
            raise ObjectStoreError(str(e)) from e

    def exists(self, bucket: str, key: str) -> bool:
        return self._object_path(bucket, key).is_file()

    def delete(self, bucket: str, key: str) -> bool:
        """Remove the object. Returns False if it did not exist."""
        path = self._object_path(bucket, key)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            logging.error(f"Failed to delete object {bucket}/{key}: {str(e)}", exc_info=True)
            raise ObjectStoreError(str(e)) from e
        return True


def get_object_store() -> LocalObjectStore:
    """Dependency: the configured object store."""
    settings = get_settings()
    return LocalObjectStore(root=settings.uploads_dir, public_base_url=settings.public_base_url)
