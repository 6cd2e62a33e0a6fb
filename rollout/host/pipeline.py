#!/usr/bin/env python3
"""
Per-host deployment procedure.

Steps run strictly in order and the first failure halts the host:

    verify -> extract -> bootstrap -> activate -> prune -> configure -> start -> health

A host that fails before `activate` keeps serving its previous release.
"""

import sys
import tempfile

from .bootstrap import install_bootstrap_files
from .health import HealthGate, health_url
from .process import ProcessController
from .releases import ReleaseStore, owner_ids
from .runtime_config import ConfigLoader, materialized_environment
from .verifier import ArtifactVerifier
from ..errors import DeploymentError
from ..models import HostReport, StepResult


class HostProcedure:
    """Runs one release onto this host and reports a tagged result per step."""

    def __init__(self, context, storage, parameters, supervisor, health_gate=None,
                 http_session=None, stdout=None, stderr=None):
        self.context = context
        self.storage = storage
        self.releases = ReleaseStore(context.app_dir, owner=context.run_as_user or None)
        self.config_loader = ConfigLoader(parameters)
        self.controller = ProcessController(supervisor)
        self.health_gate = health_gate or HealthGate(
            interval=context.health_interval, max_attempts=context.health_attempts
        )
        self.http_session = http_session
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr

        self._workspace = None
        self._bundle = None
        self._values = {}

    def _echo(self, message):
        print(f"[deploy] {message}", file=self.stdout, flush=True)

    def _steps(self):
        steps = [('verify', self._verify), ('extract', self._extract)]
        if self.context.needs_extra_bootstrap:
            steps.append(('bootstrap', self._bootstrap))
        steps += [
            ('activate', self._activate),
            ('prune', self._prune),
            ('configure', self._configure),
            ('start', self._start),
            ('health', self._health),
        ]
        return steps

    def run(self):
        ctx = self.context
        report = HostReport(release_id=ctx.release_id)
        self._echo(f"env={ctx.environment} service={ctx.service} release={ctx.release_id}")

        with tempfile.TemporaryDirectory(prefix=f"{ctx.service}-{ctx.release_id}-") as workspace:
            self._workspace = workspace
            for name, step in self._steps():
                self._echo(f"step {name}")
                try:
                    step(report)
                except DeploymentError as e:
                    report.steps.append(StepResult(name, False, e.kind, str(e)))
                    print(f"[deploy] step {name} failed: {e.kind}: {e}", file=self.stderr, flush=True)
                    return report
                report.steps.append(StepResult(name, True))

        self._echo(f"Deployment successful: {ctx.service} {ctx.release_id}")
        return report

    # Release Store + Artifact Verifier

    def _verify(self, report):
        verifier = ArtifactVerifier(self.storage, self._workspace)
        self._bundle = verifier.fetch_and_verify(self.context.release)

    def _extract(self, report):
        self.releases.prepare()
        release_dir, created = self.releases.extract(self.context.release_id, self._bundle)
        if not created:
            self._echo(f"release {self.context.release_id} already on disk")

    def _bootstrap(self, report):
        installed = install_bootstrap_files(
            self.context.bootstrap_files, self.releases.shared_dir,
            ids=owner_ids(self.context.run_as_user), session=self.http_session
        )
        if installed:
            self._echo(f"installed bootstrap files: {', '.join(installed)}")

    def _activate(self, report):
        self.releases.activate(self.context.release_id)
        report.activated = True
        self._echo(f"activated release {self.context.release_id}")

    def _prune(self, report):
        removed = self.releases.prune(self.context.retention)
        if removed:
            self._echo(f"pruned {len(removed)} old release(s)")

    # Config Loader + Process Controller

    def _configure(self, report):
        self._values = self.config_loader.load(self.context.param_path, required=self.context.config_required)
        self._echo(f"resolved {len(self._values)} runtime parameter(s) from {self.context.param_path}")

    def _start(self, report):
        ids = owner_ids(self.context.run_as_user)
        with materialized_environment(self._values, self.context.service, ids=ids) as env_file:
            description = self.controller.start(self.context, self.releases.current_link, env_file)
        self._echo(f"process {self.context.process_name} started")
        if description:
            print(description, file=self.stdout, flush=True)

    # Health Gate

    def _health(self, report):
        port = self._values.get('PORT') or self.context.port
        url = health_url(port, self.context.health_path)

        def progress(attempt, result):
            if not result.passed:
                self._echo(f"waiting for health... ({attempt}/{self.health_gate.max_attempts})")

        result = self.health_gate.wait(url, on_attempt=progress)
        report.health = result
        self._echo(f"health ok: HTTP {result.status_code} in {result.latency:.2f}s {result.snippet[:80]}")
