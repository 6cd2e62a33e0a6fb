#!/usr/bin/env python3
"""
Data model shared by the orchestrator and the per-host procedure.
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .errors import SelectorError


DEFAULT_APP_ROOT = '/opt/apps'
DEFAULT_MANAGED_BY = 'terraform'
RESTART_STRATEGIES = ('reload', 'replace')


class JobStatus(str, Enum):
    PENDING = 'Pending'
    IN_PROGRESS = 'InProgress'
    SUCCESS = 'Success'
    FAILED = 'Failed'
    CANCELLED = 'Cancelled'
    TIMED_OUT = 'TimedOut'

    @property
    def terminal(self):
        return self not in (JobStatus.PENDING, JobStatus.IN_PROGRESS)

    @property
    def failed(self):
        return self in (JobStatus.FAILED, JobStatus.CANCELLED, JobStatus.TIMED_OUT)


@dataclass
class ServiceProfile:
    """Per-service declared deployment properties."""

    name: str
    artifact_namespace: str
    process_name: Optional[str] = None
    port: int = 3000
    health_path: str = '/health'
    restart_strategy: str = 'replace'
    config_required: bool = True
    needs_extra_bootstrap: bool = False
    service_tag_key: str = 'Service'
    retention: int = 3

    def __post_init__(self):
        if not self.process_name:
            self.process_name = self.name


@dataclass
class Release:
    release_id: str
    service: str
    artifact_namespace: str

    @property
    def bundle_name(self):
        return f"{self.service}-{self.release_id}.tar.gz"

    @property
    def checksum_name(self):
        return f"{self.service}-{self.release_id}.sha256"

    @property
    def artifact_key(self):
        return f"{self.artifact_namespace}/{self.bundle_name}"

    @property
    def checksum_key(self):
        return f"{self.artifact_namespace}/{self.checksum_name}"


@dataclass
class HostContext:
    """
    Everything the per-host procedure needs, threaded explicitly through
    each step. Serialized into the dispatch payload as JSON.
    """

    release_id: str
    environment: str
    project: str
    service: str
    artifact_namespace: str
    process_name: str
    bucket: str = ''
    region: str = ''
    storage_backend: str = 's3'
    storage_root: str = ''
    parameter_backend: str = 'ssm'
    parameter_file: str = ''
    app_root: str = DEFAULT_APP_ROOT
    run_as_user: str = ''
    port: int = 3000
    health_path: str = '/health'
    health_interval: float = 2.0
    health_attempts: int = 30
    restart_strategy: str = 'replace'
    config_required: bool = True
    needs_extra_bootstrap: bool = False
    bootstrap_files: list = field(default_factory=list)
    retention: int = 3
    ecosystem_file: str = 'ecosystem.config.js'

    @property
    def release(self):
        return Release(self.release_id, self.service, self.artifact_namespace)

    @property
    def app_dir(self):
        return f"{self.app_root.rstrip('/')}/{self.service}"

    @property
    def param_path(self):
        return f"/{self.environment}/{self.project}/{self.service}"

    def to_dict(self):
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data):
        known = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class TargetSelector:
    """Set of tag key/value pairs an instance must carry to be targeted."""

    tags: tuple

    @classmethod
    def for_service(cls, environment, service, service_tag_key='Service', managed_by=DEFAULT_MANAGED_BY):
        required = (
            ('environment', environment),
            ('service', service),
            ('service_tag_key', service_tag_key),
            ('managed_by', managed_by),
        )
        missing = [name for name, value in required if not value]
        if missing:
            raise SelectorError(f"Target selector is missing: {', '.join(missing)}")
        return cls(tags=(
            ('Environment', environment),
            (service_tag_key, service),
            ('ManagedBy', managed_by),
        ))

    def matches(self, instance_tags):
        return all(instance_tags.get(key) == value for key, value in self.tags)

    def describe(self):
        return ', '.join(f"{key}={value}" for key, value in self.tags)


@dataclass
class Target:
    instance_id: str
    tags: dict = field(default_factory=dict)

    @property
    def name(self):
        return self.tags.get('Name', self.instance_id)


@dataclass
class DispatchPayload:
    commands: list
    comment: str
    context: HostContext


@dataclass
class Invocation:
    instance_id: str
    status: JobStatus


@dataclass
class HealthResult:
    passed: bool
    status_code: Optional[int] = None
    latency: float = 0.0
    snippet: str = ''
    error: str = ''


@dataclass
class StepResult:
    """Tagged result of one per-host step: ok, or the error kind that halted it."""

    step: str
    ok: bool
    error_kind: Optional[str] = None
    detail: str = ''


@dataclass
class HostReport:
    release_id: str
    steps: list = field(default_factory=list)
    activated: bool = False
    health: Optional[HealthResult] = None

    @property
    def succeeded(self):
        return bool(self.steps) and all(step.ok for step in self.steps)

    @property
    def failed_step(self):
        return next((step for step in self.steps if not step.ok), None)


@dataclass
class HostOutcome:
    instance_id: str
    status: JobStatus
    stdout: str = ''
    stderr: str = ''


@dataclass
class JobOutcome:
    status: JobStatus
    command_id: Optional[str] = None
    hosts: list = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def succeeded(self):
        return self.status == JobStatus.SUCCESS

    @property
    def exit_code(self):
        return 0 if self.succeeded else 1

    @property
    def diagnostics(self):
        """Captured output of every host that did not succeed."""
        return [host for host in self.hosts if host.status != JobStatus.SUCCESS]

    def to_record(self):
        return {
            'status': self.status.value,
            'command_id': self.command_id,
            'error': f"{type(self.error).__name__}: {self.error}" if self.error else None,
            'hosts': [
                {'instance_id': h.instance_id, 'status': h.status.value}
                for h in self.hosts
            ],
        }
