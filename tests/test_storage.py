"""Unit tests for blob store backends."""

from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from rollout.errors import ConfigError, FetchError
from rollout.storage import LocalStorage, S3Storage, get_storage_backend


def client_error(code, operation='HeadObject'):
    return ClientError({'Error': {'Code': code, 'Message': code}}, operation)


def test_local_fetch_and_metadata(tmp_path):
    """Test local store copy, metadata and listing."""
    root = tmp_path / 'store'
    (root / 'apps/backend').mkdir(parents=True)
    (root / 'apps/backend/backend-api-r1.tar.gz').write_bytes(b'bundle')
    (root / 'apps/backend/backend-api-r1.sha256').write_text('x')
    storage = LocalStorage(root)

    target = tmp_path / 'work' / 'bundle.tar.gz'
    storage.fetch_file('apps/backend/backend-api-r1.tar.gz', target)

    assert target.read_bytes() == b'bundle'
    assert storage.get_metadata('apps/backend/backend-api-r1.tar.gz')['size'] == 6
    assert storage.get_metadata('apps/backend/missing.tar.gz') == {'exists': False}
    assert storage.list_keys('apps/backend') == [
        'apps/backend/backend-api-r1.sha256', 'apps/backend/backend-api-r1.tar.gz'
    ]
    assert storage.list_keys('apps/none') == []


def test_local_fetch_missing(tmp_path):
    """Test a missing object raises FetchError."""
    with pytest.raises(FetchError):
        LocalStorage(tmp_path).fetch_file('nope.tar.gz', tmp_path / 'out')


def test_s3_fetch(tmp_path):
    """Test S3 download arguments."""
    client = Mock()
    storage = S3Storage('artifacts', client=client)

    storage.fetch_file('apps/backend/a.tar.gz', tmp_path / 'a.tar.gz')

    client.download_file.assert_called_once_with('artifacts', 'apps/backend/a.tar.gz', str(tmp_path / 'a.tar.gz'))


def test_s3_fetch_error(tmp_path):
    """Test S3 client errors map to FetchError."""
    client = Mock()
    client.download_file.side_effect = client_error('403', 'GetObject')

    with pytest.raises(FetchError) as exc:
        S3Storage('artifacts', client=client).fetch_file('k', tmp_path / 'k')
    assert '403' in str(exc.value)


def test_s3_metadata():
    """Test head_object mapping, including missing keys."""
    client = Mock()
    client.head_object.return_value = {'ContentLength': 42, 'LastModified': 'yesterday'}
    storage = S3Storage('artifacts', client=client)

    assert storage.get_metadata('k')['exists'] is True
    assert storage.get_metadata('k')['size'] == 42

    client.head_object.side_effect = client_error('404')
    assert storage.get_metadata('k') == {'exists': False}

    client.head_object.side_effect = client_error('AccessDenied')
    with pytest.raises(FetchError):
        storage.get_metadata('k')


def test_s3_list_keys():
    """Test listing walks every page."""
    client = Mock()
    client.get_paginator.return_value.paginate.return_value = [
        {'Contents': [{'Key': 'apps/b.tar.gz'}]},
        {'Contents': [{'Key': 'apps/a.tar.gz'}]},
        {},
    ]

    keys = S3Storage('artifacts', client=client).list_keys('apps/')

    assert keys == ['apps/a.tar.gz', 'apps/b.tar.gz']
    client.get_paginator.return_value.paginate.assert_called_once_with(Bucket='artifacts', Prefix='apps/')


def test_storage_factory(tmp_path):
    """Test backend selection."""
    assert isinstance(get_storage_backend('local', root=str(tmp_path)), LocalStorage)
    assert isinstance(get_storage_backend('s3', bucket='b', region='us-east-1'), S3Storage)
    with pytest.raises(ConfigError):
        get_storage_backend('ftp')
