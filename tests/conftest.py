"""Shared fixtures and fakes for the rollout test suite."""

import dataclasses
import hashlib
import io
import os
import shlex
import stat
import tarfile
import threading
import time
from pathlib import Path

import pytest
import requests

from rollout.config.settings import deep_merge, load_config
from rollout.errors import ProcessStartError
from rollout.executors import InProcessRunner
from rollout.host.health import HealthGate
from rollout.host.pipeline import HostProcedure
from rollout.models import Release
from rollout.storage.base import StorageBackend


ROLLOUT_ENV_VARS = [
    'ROLLOUT_CONFIG', 'DEPLOYMENT_ENV', 'AWS_REGION', 'S3_BUCKET_ARTIFACT', 'PROJECT_NAME',
    'ROLLING_MAX_CONCURRENCY', 'RELEASE_ID', 'ENVIRONMENT', 'SERVICE_NAME', 'ARTIFACT_NAMESPACE',
    'PM2_APP_NAME', 'NEEDS_RDS_CA', 'SSM_TAG_KEY_SERVICE',
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the caller's shell from leaking into config loading."""
    for name in ROLLOUT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def no_sleep(seconds):
    pass


def read_env_file(path):
    """Parse the export lines of an env file back into a dict."""
    values = {}
    with open(path, 'r') as f:
        for line in f:
            words = shlex.split(line)
            if len(words) == 2 and words[0] == 'export' and '=' in words[1]:
                key, value = words[1].split('=', 1)
                values[key] = value
    return values


def host(instance_id, environment='dev', service='backend-api'):
    return {
        'instance_id': instance_id,
        'tags': {
            'Name': f"{service}-{instance_id}",
            'Environment': environment,
            'Service': service,
            'ManagedBy': 'terraform',
        },
    }


@pytest.fixture
def make_config(tmp_path):
    """Packaged config pointed at local backends under tmp_path."""
    def _make(hosts=None, **deployment):
        overrides = {
            'deployment': {
                'project': 'ride',
                'app_root': str(tmp_path / 'apps'),
                'run_as_user': '',
                'storage_backend': 'local',
                'parameter_backend': 'local',
                'transport': 'local',
                **deployment,
            },
            'health': {'interval': 0, 'attempts': 3},
            'monitor': {'interval': 0, 'attempts': 5},
            'local': {
                'storage_root': str(tmp_path / 'artifacts'),
                'parameter_file': str(tmp_path / 'parameters.yaml'),
                'hosts': hosts if hosts is not None else [host('i-001')],
            },
        }
        return deep_merge(load_config(environ={}), overrides)
    return _make


def build_bundle(files=None):
    """Gzipped tar bytes holding files {name: text}."""
    files = files or {
        'ecosystem.config.js': "module.exports = { apps: [] };\n",
        'server.js': "console.log('hello');\n",
    }
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode='w:gz') as archive:
        for name, text in files.items():
            data = text.encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def publish_release(root, service, namespace, release_id, bundle=None, checksum=None):
    """Write a bundle and its sha256 file into a local blob store root."""
    release = Release(release_id, service, namespace)
    bundle = bundle if bundle is not None else build_bundle({'VERSION': release_id})
    bundle_path = Path(root) / release.artifact_key
    bundle_path.parent.mkdir(parents=True, exist_ok=True)
    bundle_path.write_bytes(bundle)
    digest = checksum or hashlib.sha256(bundle).hexdigest()
    (Path(root) / release.checksum_key).write_text(f"{digest}  {release.bundle_name}\n")
    return release


class FakeResponse:

    def __init__(self, status_code, body=''):
        self.status_code = status_code
        self.text = body
        self.content = body.encode()

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeHttpSession:
    """
    Replays responses in order; the last one repeats. Each entry is a
    status code, a (status, body) pair or an exception to raise.
    """

    def __init__(self, responses=(200,)):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        entry = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, tuple):
            return FakeResponse(*entry)
        return FakeResponse(entry, '{"status":"ok"}' if entry == 200 else 'starting')


class FakeSupervisor:
    """Records supervisor calls and snapshots the env file it is handed."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.calls = []
        self.env_snapshots = []
        self.running = set()

    def _record(self, operation, *args):
        self.calls.append((operation,) + args)
        if operation == self.fail_on:
            raise ProcessStartError(f"pm2 {operation} failed (exit 1)")

    def _capture(self, env_file):
        mode = stat.S_IMODE(os.stat(env_file).st_mode)
        self.env_snapshots.append((env_file, mode, read_env_file(env_file)))

    def start_or_reload(self, name, cwd, env_file, ecosystem):
        self._capture(env_file)
        self._record('startOrReload', name, str(cwd))
        self.running.add(name)
        return ''

    def start(self, name, cwd, env_file, ecosystem):
        self._capture(env_file)
        self._record('start', name, str(cwd))
        self.running.add(name)
        return ''

    def delete(self, name):
        self.calls.append(('delete', name))
        was_running = name in self.running
        self.running.discard(name)
        return was_running

    def save(self):
        self._record('save')
        return ''

    def describe(self, name):
        return f"{name} status: online"

    @property
    def operations(self):
        return [call[0] for call in self.calls]


class CountingStorage(StorageBackend):
    """Wraps a blob store and records every key fetched."""

    def __init__(self, inner):
        self.inner = inner
        self.fetched = []

    def fetch_file(self, storage_key, local_path):
        self.fetched.append(storage_key)
        return self.inner.fetch_file(storage_key, local_path)

    def get_metadata(self, storage_key):
        return self.inner.get_metadata(storage_key)

    def list_keys(self, prefix):
        return self.inner.list_keys(prefix)


class _TimedProcedure:

    def __init__(self, procedure, instance_id, spans, lock):
        self.procedure = procedure
        self.instance_id = instance_id
        self.spans = spans
        self.lock = lock

    def run(self):
        started = time.monotonic()
        report = self.procedure.run()
        with self.lock:
            self.spans.append((self.instance_id, started, time.monotonic()))
        return report


class FakeFleet:
    """
    In-process hosts for the local transport. Each host gets its own app
    root, supervisor and health endpoint; health responses may be set per
    instance id.
    """

    def __init__(self, root, storage, parameters, health=(200,), health_by_host=None):
        self.root = Path(root)
        self.storage = storage
        self.parameters = parameters
        self.health = health
        self.health_by_host = health_by_host or {}
        self.supervisors = {}
        self.health_sessions = {}
        self.spans = []
        self._lock = threading.Lock()

    def app_dir(self, instance_id, service='backend-api'):
        return self.root / instance_id / service

    def current(self, instance_id, service='backend-api'):
        return self.app_dir(instance_id, service) / 'current'

    def factory(self, target, context, stdout, stderr):
        instance_id = target.instance_id
        host_context = dataclasses.replace(context, app_root=str(self.root / instance_id))
        supervisor = FakeSupervisor()
        session = FakeHttpSession(self.health_by_host.get(instance_id, self.health))
        with self._lock:
            self.supervisors[instance_id] = supervisor
            self.health_sessions[instance_id] = session
        gate = HealthGate(interval=0, max_attempts=context.health_attempts, session=session, sleep=no_sleep)
        procedure = HostProcedure(
            host_context, self.storage, self.parameters, supervisor, health_gate=gate,
            http_session=FakeHttpSession([(200, '-----BEGIN CERTIFICATE-----\n')]),
            stdout=stdout, stderr=stderr
        )
        return _TimedProcedure(procedure, instance_id, self.spans, self._lock)

    def runner(self):
        return InProcessRunner(self.factory)
