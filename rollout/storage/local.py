#!/usr/bin/env python3
"""
Local storage backend for development and tests.
Objects live under a root directory, keyed by relative path.
"""

import shutil
from pathlib import Path

from .base import StorageBackend
from ..errors import FetchError


class LocalStorage(StorageBackend):
    """Directory-backed blob store."""

    def __init__(self, root):
        self.root = Path(root)

    def _path(self, storage_key):
        return self.root / storage_key

    def fetch_file(self, storage_key, local_path):
        source = self._path(storage_key)
        print(f"Fetching from local store: {source}")
        if not source.is_file():
            raise FetchError(f"Object not found: {storage_key}")
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            shutil.copyfile(source, local_path)
        except OSError as e:
            raise FetchError(f"Copy of {storage_key} failed: {e}")
        return str(local_path)

    def get_metadata(self, storage_key):
        path = self._path(storage_key)
        if path.is_file():
            return {
                'storage_mode': 'local',
                'local_path': str(path),
                'exists': True,
                'size': path.stat().st_size
            }
        return {'exists': False}

    def list_keys(self, prefix):
        # Plain string prefix, same as an S3 listing
        if not self.root.is_dir():
            return []
        keys = (path.relative_to(self.root).as_posix() for path in self.root.rglob('*') if path.is_file())
        return sorted(key for key in keys if key.startswith(prefix))
