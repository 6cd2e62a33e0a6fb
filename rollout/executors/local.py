#!/usr/bin/env python3
"""
Local transport for development and tests.

Mirrors the remote transport's contract: dispatch returns immediately,
hosts run on a worker pool no larger than max_concurrency, and once more
than max_errors hosts have failed no further host is started.
"""

import io
import subprocess
import threading
import traceback
import uuid
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait

from .base import BaseTransport
from ..errors import DispatchError
from ..models import Invocation, JobStatus, Target


class ShellRunner:
    """Run the payload's commands with bash on this machine."""

    def __call__(self, target, payload):
        script = '\n'.join(payload.commands)
        print(f"Running payload for {target.instance_id} (LOCAL)")
        result = subprocess.run(['bash', '-c', script], capture_output=True, text=True)
        return result.returncode, result.stdout, result.stderr


class InProcessRunner:
    """
    Run the host procedure in this process.

    procedure_factory(target, context, stdout, stderr) must return an object
    with run() -> HostReport.
    """

    def __init__(self, procedure_factory):
        self.procedure_factory = procedure_factory

    def __call__(self, target, payload):
        stdout, stderr = io.StringIO(), io.StringIO()
        procedure = self.procedure_factory(target, payload.context, stdout, stderr)
        report = procedure.run()
        return (0 if report.succeeded else 1), stdout.getvalue(), stderr.getvalue()


class _LocalCommand:

    def __init__(self, targets):
        self.statuses = {t.instance_id: JobStatus.PENDING for t in targets}
        self.outputs = {}
        self.cancelled = threading.Event()


class LocalTransport(BaseTransport):

    def __init__(self, hosts, runner=None, background=True):
        self.hosts = [h if isinstance(h, Target) else Target(h['instance_id'], dict(h.get('tags', {})))
                      for h in hosts]
        self.runner = runner or ShellRunner()
        self.background = background
        self._commands = {}
        self._lock = threading.Lock()

    def resolve_targets(self, selector):
        return [host for host in self.hosts if selector.matches(host.tags)]

    def dispatch(self, targets, payload, max_concurrency=1, max_errors=0):
        if not targets:
            raise DispatchError("No targets to dispatch to")
        if max_concurrency < 1:
            raise DispatchError(f"max_concurrency must be at least 1, got {max_concurrency}")

        command_id = f"local-{uuid.uuid4()}"
        command = _LocalCommand(targets)
        with self._lock:
            self._commands[command_id] = command

        args = (command, list(targets), payload, max_concurrency, max_errors)
        if self.background:
            threading.Thread(target=self._run_command, args=args, daemon=True).start()
        else:
            self._run_command(*args)
        return command_id

    def _set_status(self, command, instance_id, status):
        with self._lock:
            command.statuses[instance_id] = status

    def _run_host(self, command, target, payload):
        try:
            exit_code, stdout, stderr = self.runner(target, payload)
        except Exception:
            exit_code, stdout, stderr = 1, '', traceback.format_exc()
        status = JobStatus.SUCCESS if exit_code == 0 else JobStatus.FAILED
        with self._lock:
            command.outputs[target.instance_id] = (stdout, stderr)
            command.statuses[target.instance_id] = status
        return status == JobStatus.SUCCESS

    def _run_command(self, command, targets, payload, max_concurrency, max_errors):
        pending = list(targets)
        in_flight = {}
        errors = 0

        with ThreadPoolExecutor(max_workers=max_concurrency) as pool:
            while pending or in_flight:
                while (pending and len(in_flight) < max_concurrency
                       and errors <= max_errors and not command.cancelled.is_set()):
                    target = pending.pop(0)
                    self._set_status(command, target.instance_id, JobStatus.IN_PROGRESS)
                    in_flight[pool.submit(self._run_host, command, target, payload)] = target
                if not in_flight:
                    break
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    in_flight.pop(future)
                    if not future.result():
                        errors += 1

        # Hosts never started: error threshold reached or cancelled
        for target in pending:
            reason = 'cancelled' if command.cancelled.is_set() else 'error threshold reached'
            with self._lock:
                command.outputs[target.instance_id] = ('', f"not started: {reason}")
                command.statuses[target.instance_id] = JobStatus.CANCELLED

    def _get_command(self, command_id):
        command = self._commands.get(command_id)
        if command is None:
            raise DispatchError(f"Unknown command id: {command_id}")
        return command

    def list_invocations(self, command_id):
        with self._lock:
            command = self._get_command(command_id)
            return [Invocation(instance_id, status) for instance_id, status in command.statuses.items()]

    def get_output(self, command_id, instance_id):
        with self._lock:
            command = self._get_command(command_id)
            return command.outputs.get(instance_id, ('', ''))

    def cancel(self, command_id):
        with self._lock:
            command = self._get_command(command_id)
        command.cancelled.set()
        print(f"Cancel requested for {command_id} (LOCAL)")
