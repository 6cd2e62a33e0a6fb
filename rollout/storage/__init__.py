"""
Storage backend abstraction package.

This package provides the blob stores release bundles are fetched from
(local directory, S3).
"""

from .local import LocalStorage
from .s3 import S3Storage
from ..errors import ConfigError


def get_storage_backend(mode, bucket='', region='', root=''):
    """Factory function to get appropriate storage backend."""
    if mode == 'local':
        return LocalStorage(root or './artifacts')
    elif mode == 's3':
        return S3Storage(bucket, region)
    raise ConfigError(f"Unknown storage backend: {mode}")


__all__ = ['LocalStorage', 'S3Storage', 'get_storage_backend']
