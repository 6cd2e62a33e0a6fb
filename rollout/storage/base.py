#!/usr/bin/env python3
"""
Base blob store interface for release artifacts.
"""


class StorageBackend:
    """Base interface for storage backends holding release bundles."""

    def fetch_file(self, storage_key, local_path):
        """
        Download an object verbatim to local_path.

        Raises:
            FetchError: object missing or transport failure
        """
        raise NotImplementedError

    def get_metadata(self, storage_key):
        """Return {'exists': bool, ...} for a stored object."""
        raise NotImplementedError

    def list_keys(self, prefix):
        """List object keys starting with prefix (a plain string prefix, as in S3)."""
        raise NotImplementedError
