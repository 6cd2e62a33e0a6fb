"""Unit tests for runtime configuration loading and materialization."""

import os
import stat

import pytest

from conftest import read_env_file
from rollout.errors import ConfigMissingError, ProcessStartError
from rollout.host.runtime_config import ConfigLoader, materialized_environment, render_env_file
from rollout.parameters import LocalParameterStore


def test_required_config_missing():
    """Test a config-required service with nothing stored fails."""
    loader = ConfigLoader(LocalParameterStore({}))

    with pytest.raises(ConfigMissingError):
        loader.load('/dev/ride/backend-api', required=True)


def test_optional_config_missing(capsys):
    """Test an optional service continues with no values."""
    loader = ConfigLoader(LocalParameterStore({}))

    assert loader.load('/dev/ride/web-driver', required=False) == {}
    assert 'continuing' in capsys.readouterr().out


def test_env_file_quoting_round_trip(tmp_path):
    """Test values with shell metacharacters survive the env file."""
    values = {'PORT': '3000', 'GREETING': "it's a $HOME `test`", 'EMPTY': ''}

    content = render_env_file(values)
    path = tmp_path / 'env'
    path.write_text(content)

    assert content.splitlines()[0] == "export EMPTY=''"
    assert 'export PORT=3000' in content
    assert read_env_file(path) == values


def test_env_file_skips_invalid_names(tmp_path, capsys):
    """Test keys that are not shell identifiers are dropped with a warning."""
    content = render_env_file({'GOOD_KEY': 'x', 'bad-key': 'y', '9LIVES': 'z'})

    assert content == 'export GOOD_KEY=x\n'
    assert 'bad-key' in capsys.readouterr().err


def test_materialized_environment_is_private_and_removed(tmp_path):
    """Test the env file is 0600 while in use and gone afterwards."""
    values = {'PORT': '3000', 'DATABASE_URL': "postgres://u:p@db/x?opt='1'"}

    with materialized_environment(values, 'backend-api', directory=tmp_path) as path:
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert read_env_file(path) == values

    assert not os.path.exists(path)
    assert list(tmp_path.iterdir()) == []


def test_materialized_environment_removed_on_error(tmp_path):
    """Test the env file is removed when the start step fails."""
    with pytest.raises(RuntimeError):
        with materialized_environment({'PORT': '3000'}, 'backend-api', directory=tmp_path) as path:
            raise RuntimeError('pm2 exploded')

    assert not os.path.exists(path)


def test_materialized_environment_unwritable_directory(tmp_path):
    """Test an env file that cannot be created is a process start failure."""
    with pytest.raises(ProcessStartError):
        with materialized_environment({'PORT': '3000'}, 'backend-api', directory=tmp_path / 'missing'):
            pass


def test_materialized_environment_chown_failure(tmp_path, monkeypatch):
    """Test a failed ownership change is a process start failure and leaves no file."""
    def refuse(fd, uid, gid):
        raise PermissionError('operation not permitted')

    monkeypatch.setattr(os, 'fchown', refuse)

    with pytest.raises(ProcessStartError):
        with materialized_environment({'PORT': '3000'}, 'backend-api', directory=tmp_path, ids=(1234, 1234)):
            pass

    assert list(tmp_path.iterdir()) == []
