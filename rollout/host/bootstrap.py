#!/usr/bin/env python3
"""
Extra host bootstrap - shared files some services need before they start,
e.g. the RDS CA bundle for IAM-authenticated TLS database connections.
"""

import os
from pathlib import Path

import requests

from ..errors import FetchError


def install_bootstrap_files(files, shared_dir, ids=None, session=None, timeout=30):
    """
    Download each {'url', 'filename'} into shared_dir unless a non-empty copy
    is already there.

    Returns:
        List of file names that were downloaded
    """
    session = session or requests.Session()
    shared_dir = Path(shared_dir)
    installed = []

    for item in files:
        destination = shared_dir / item['filename']
        if destination.is_file() and destination.stat().st_size > 0:
            print(f"Bootstrap file present: {destination}")
            continue

        print(f"Downloading bootstrap file: {item['url']}")
        try:
            response = session.get(item['url'], timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"Bootstrap download of {item['url']} failed: {e}")

        temp_path = destination.with_name(f".{destination.name}.tmp")
        try:
            temp_path.write_bytes(response.content)
            temp_path.chmod(0o644)
            if ids:
                os.chown(temp_path, *ids)
            os.replace(temp_path, destination)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise FetchError(f"Writing bootstrap file {destination} failed: {e}")
        installed.append(item['filename'])

    return installed
