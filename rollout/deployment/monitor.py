#!/usr/bin/env python3
"""
Deployment monitor - poll a dispatched command to a terminal state,
aggregate per-host results and surface captured output on failure.
"""

import sys

from ..errors import DeploymentError, PollTimeoutError
from ..models import HostOutcome, JobOutcome, JobStatus
from ..polling import Poller


def aggregate_status(statuses):
    """
    Job status from per-host statuses: any failed host fails the job,
    success needs every host to succeed.
    """
    if not statuses:
        return JobStatus.PENDING
    values = list(statuses.values())
    if any(status.failed for status in values):
        return JobStatus.FAILED
    if all(status == JobStatus.SUCCESS for status in values):
        return JobStatus.SUCCESS
    if any(status != JobStatus.PENDING for status in values):
        return JobStatus.IN_PROGRESS
    return JobStatus.PENDING


class DeploymentMonitor:

    def __init__(self, transport, interval=10, max_attempts=120, sleep=None, cancel_event=None):
        self.transport = transport
        self.poller = Poller(interval, max_attempts, sleep=sleep, cancel_event=cancel_event)

    def snapshot(self, command_id, target_ids=None):
        statuses = {inv.instance_id: inv.status for inv in self.transport.list_invocations(command_id)}
        # Targeted hosts without an invocation yet are still pending
        for instance_id in target_ids or []:
            statuses.setdefault(instance_id, JobStatus.PENDING)
        return statuses

    def wait(self, command_id, targets=None):
        """
        Block until the command is terminal or the polling budget is spent.

        Returns:
            JobOutcome; non-success outcomes carry every host's output
        """
        target_ids = [t.instance_id for t in targets] if targets else None
        max_attempts = self.poller.max_attempts

        def progress(attempt, statuses):
            summary = ' '.join(f"{iid}={status.value}" for iid, status in sorted(statuses.items()))
            print(f"Statuses: {summary or 'none yet'} (attempt {attempt}/{max_attempts})")

        outcome = self.poller.until(
            lambda: self.snapshot(command_id, target_ids),
            lambda statuses: aggregate_status(statuses).terminal,
            on_attempt=progress
        )
        statuses = outcome.value or {}
        error = None

        if outcome.satisfied:
            status = aggregate_status(statuses)
        else:
            status = JobStatus.TIMED_OUT
            waited = 'cancelled' if outcome.cancelled else f"{outcome.attempts} polls"
            error = PollTimeoutError(f"Command {command_id} not finished after {waited}")

        hosts = [HostOutcome(iid, host_status) for iid, host_status in sorted(statuses.items())]
        job = JobOutcome(status=status, command_id=command_id, hosts=hosts, error=error)

        if not job.succeeded:
            self.collect_output(job)
        return job

    def collect_output(self, job):
        """Fetch and print each host's captured stdout/stderr."""
        print(f"[deploy] command {job.command_id} {job.status.value}; fetching per-instance output",
              file=sys.stderr)
        for host in job.hosts:
            try:
                host.stdout, host.stderr = self.transport.get_output(job.command_id, host.instance_id)
            except DeploymentError as e:
                host.stderr = f"(output unavailable: {e})"
            print(f"----- {host.instance_id} [{host.status.value}] (stdout) -----", file=sys.stderr)
            print(host.stdout.rstrip(), file=sys.stderr)
            print(f"----- {host.instance_id} [{host.status.value}] (stderr) -----", file=sys.stderr)
            print(host.stderr.rstrip(), file=sys.stderr)
