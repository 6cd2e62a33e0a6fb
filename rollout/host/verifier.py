#!/usr/bin/env python3
"""
Artifact verification - fetch a release bundle plus its published checksum
and refuse anything that does not match.
"""

import hashlib
import re
from pathlib import Path

from ..errors import IntegrityError


SHA256_PATTERN = re.compile(r'^[0-9a-fA-F]{64}$')
CHUNK_SIZE = 1024 * 1024


def sha256_file(path):
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()


def read_published_checksum(path):
    """Parse a sha256sum-style file: '<hex digest>  <file name>'."""
    try:
        with open(path, 'rb') as f:
            content = f.read().decode('ascii').strip()
    except (OSError, UnicodeDecodeError) as e:
        raise IntegrityError(f"Unreadable checksum file {Path(path).name}: {e}")
    digest = content.split()[0] if content else ''
    if not SHA256_PATTERN.match(digest):
        raise IntegrityError(f"Malformed checksum file: {Path(path).name}")
    return digest.lower()


class ArtifactVerifier:
    """Fetches bundle + checksum into a workspace and compares digests."""

    def __init__(self, storage, workspace):
        self.storage = storage
        self.workspace = Path(workspace)

    def fetch_and_verify(self, release):
        """
        Fetch and verify a release bundle.

        Args:
            release: Release describing the artifact keys

        Returns:
            Local path of the verified bundle

        Raises:
            FetchError: bundle or checksum could not be fetched
            IntegrityError: digests differ (the bundle is deleted)
        """
        bundle_path = self.workspace / release.bundle_name
        checksum_path = self.workspace / release.checksum_name

        self.storage.fetch_file(release.artifact_key, bundle_path)
        self.storage.fetch_file(release.checksum_key, checksum_path)

        published = read_published_checksum(checksum_path)
        actual = sha256_file(bundle_path)
        if actual != published:
            bundle_path.unlink()
            raise IntegrityError(
                f"Checksum mismatch for {release.bundle_name}: "
                f"published {published}, computed {actual}"
            )

        print(f"[OK] Checksum verified: {release.bundle_name} ({actual[:12]})")
        return bundle_path
