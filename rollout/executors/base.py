#!/usr/bin/env python3
"""
Base remote command transport interface.
"""


class BaseTransport:
    """Interface for sending the per-host procedure to a fleet."""

    def resolve_targets(self, selector):
        """Return the Targets whose tags satisfy the selector."""
        raise NotImplementedError("Subclasses must implement resolve_targets()")

    def dispatch(self, targets, payload, max_concurrency=1, max_errors=0):
        """
        Submit payload to targets without waiting for it to finish.

        Args:
            targets: Targets resolved for this job
            payload: DispatchPayload (shell commands + host context)
            max_concurrency: hosts allowed mid-procedure at once
            max_errors: failed hosts tolerated before no new host starts

        Returns:
            Command id used for polling
        """
        raise NotImplementedError("Subclasses must implement dispatch()")

    def list_invocations(self, command_id):
        """Per-host Invocation statuses for a command."""
        raise NotImplementedError("Subclasses must implement list_invocations()")

    def get_output(self, command_id, instance_id):
        """Captured (stdout, stderr) of one host's run."""
        raise NotImplementedError("Subclasses must implement get_output()")

    def cancel(self, command_id):
        """Ask the transport to stop a command; in-flight hosts may still finish."""
        raise NotImplementedError("Subclasses must implement cancel()")
