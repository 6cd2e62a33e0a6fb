#!/usr/bin/env python3
"""
On-host release layout:

    {app_dir}/releases/{release_id}/   extracted bundles
    {app_dir}/current -> releases/...  active pointer (symlink)
    {app_dir}/shared/                  files that outlive releases
"""

import os
import pwd
import shutil
import tarfile
import uuid
from pathlib import Path

from ..errors import ActivationError, ExtractionError


def owner_ids(user):
    """Return (uid, gid) for a runtime user, or None when no user is set."""
    if not user:
        return None
    try:
        entry = pwd.getpwnam(user)
    except KeyError:
        raise ExtractionError(f"Runtime user '{user}' does not exist on this host")
    return entry.pw_uid, entry.pw_gid


class ReleaseStore:
    """Manages release directories and the active pointer for one service."""

    def __init__(self, app_dir, owner=None):
        self.app_dir = Path(app_dir)
        self.owner = owner

    @property
    def releases_dir(self):
        return self.app_dir / 'releases'

    @property
    def shared_dir(self):
        return self.app_dir / 'shared'

    @property
    def current_link(self):
        return self.app_dir / 'current'

    def release_dir(self, release_id):
        return self.releases_dir / release_id

    def prepare(self):
        """Create the directory layout (idempotent)."""
        ids = owner_ids(self.owner)
        try:
            for directory in (self.app_dir, self.releases_dir, self.shared_dir, self.shared_dir / 'logs'):
                directory.mkdir(parents=True, exist_ok=True)
                directory.chmod(0o755)
                if ids:
                    os.chown(directory, *ids)
        except OSError as e:
            raise ExtractionError(f"Preparing {self.app_dir} failed: {e}")

    def list_releases(self):
        if not self.releases_dir.is_dir():
            return []
        # Hidden entries are in-progress extractions
        return sorted(
            entry.name for entry in self.releases_dir.iterdir()
            if entry.is_dir() and not entry.name.startswith('.')
        )

    def active_release(self):
        if not self.current_link.is_symlink():
            return None
        return Path(os.readlink(self.current_link)).name

    def extract(self, release_id, bundle_path):
        """
        Extract a verified bundle into releases/{release_id}.

        Returns:
            (release_dir, created) - created is False when the release was
            already extracted by an earlier run

        Raises:
            ExtractionError: corrupt archive or filesystem failure
        """
        target = self.release_dir(release_id)
        if target.is_dir():
            print(f"Release {release_id} already extracted, reusing {target}")
            return target, False

        ids = owner_ids(self.owner)
        staging = self.releases_dir / f".{release_id}.partial-{uuid.uuid4().hex[:8]}"
        try:
            staging.mkdir(parents=True)
            with tarfile.open(bundle_path, 'r:*') as archive:
                if hasattr(tarfile, 'data_filter'):
                    archive.extractall(staging, filter='data')
                else:
                    archive.extractall(staging)
            self._normalize(staging, ids)
            os.rename(staging, target)
        except (tarfile.TarError, OSError) as e:
            shutil.rmtree(staging, ignore_errors=True)
            if target.is_dir():
                # Lost a race with another extraction of the same release
                return target, False
            raise ExtractionError(f"Extracting {Path(bundle_path).name} failed: {e}")

        print(f"[OK] Extracted release {release_id} to {target}")
        return target, True

    def _normalize(self, root, ids):
        root.chmod(0o755)
        if not ids:
            return
        for dirpath, dirnames, filenames in os.walk(root):
            os.chown(dirpath, *ids)
            for name in filenames:
                os.lchown(os.path.join(dirpath, name), *ids)

    def activate(self, release_id):
        """
        Point current at releases/{release_id} with a single rename, so a
        concurrent reader sees either the old or the new release.

        Raises:
            ActivationError: the previous pointer is left untouched
        """
        target = self.release_dir(release_id)
        if not target.is_dir():
            raise ActivationError(f"Release {release_id} is not extracted")

        ids = owner_ids(self.owner)
        temp_link = self.app_dir / f".current.{uuid.uuid4().hex[:8]}"
        try:
            os.symlink(target, temp_link)
            if ids:
                os.lchown(temp_link, *ids)
            os.replace(temp_link, self.current_link)
        except OSError as e:
            if temp_link.is_symlink():
                temp_link.unlink()
            raise ActivationError(f"Switching current to {release_id} failed: {e}")

        return self.current_link

    def prune(self, keep):
        """Delete releases beyond the newest `keep`, never the active one."""
        active = self.active_release()
        removed = []
        for release_id in sorted(self.list_releases(), reverse=True)[keep:]:
            if release_id == active:
                continue
            try:
                shutil.rmtree(self.release_dir(release_id))
            except OSError as e:
                print(f"WARNING: could not remove release {release_id}: {e}")
                continue
            removed.append(release_id)

        if removed:
            print(f"Pruned releases: {', '.join(removed)}")
        return removed
