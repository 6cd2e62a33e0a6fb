"""Unit tests for extra host bootstrap downloads."""

import os
import stat

import pytest
import requests

from conftest import FakeHttpSession
from rollout.errors import FetchError
from rollout.host.bootstrap import install_bootstrap_files


FILES = [{'url': 'https://example.test/global-bundle.pem', 'filename': 'aws-rds-global-bundle.pem'}]


def test_downloads_missing_file(tmp_path):
    """Test a missing bootstrap file is downloaded world-readable."""
    session = FakeHttpSession([(200, 'PEM DATA')])

    installed = install_bootstrap_files(FILES, tmp_path, session=session)

    target = tmp_path / 'aws-rds-global-bundle.pem'
    assert installed == ['aws-rds-global-bundle.pem']
    assert target.read_text() == 'PEM DATA'
    assert stat.S_IMODE(os.stat(target).st_mode) == 0o644
    assert session.calls == ['https://example.test/global-bundle.pem']


def test_existing_file_is_kept(tmp_path):
    """Test a present, non-empty file is not downloaded again."""
    (tmp_path / 'aws-rds-global-bundle.pem').write_text('OLD')
    session = FakeHttpSession([(200, 'NEW')])

    assert install_bootstrap_files(FILES, tmp_path, session=session) == []
    assert session.calls == []
    assert (tmp_path / 'aws-rds-global-bundle.pem').read_text() == 'OLD'


def test_download_failure(tmp_path):
    """Test HTTP errors become FetchError and leave nothing behind."""
    for response in ((404, 'missing'), requests.ConnectionError('offline')):
        with pytest.raises(FetchError):
            install_bootstrap_files(FILES, tmp_path, session=FakeHttpSession([response]))

    assert list(tmp_path.iterdir()) == []
