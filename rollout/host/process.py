#!/usr/bin/env python3
"""
Process control through PM2.

Two restart strategies, declared per service:
  reload  - startOrReload: restart in place with the new env, start if absent
  replace - delete then start: no in-memory state survives the deploy
"""

import shlex
import subprocess

from ..errors import ProcessStartError


DESCRIBE_LINES = 120


class Pm2Supervisor:
    """Runs pm2 via subprocess, optionally as the runtime user."""

    def __init__(self, run_as_user=None, runner=None):
        self.run_as_user = run_as_user
        self.runner = runner or subprocess.run

    def _build_cmd(self, script):
        if self.run_as_user:
            return ['runuser', '-u', self.run_as_user, '--', 'bash', '-lc', script]
        return ['bash', '-c', script]

    def _run(self, pm2_args, cwd=None, env_file=None):
        parts = ['set -euo pipefail']
        if self.run_as_user:
            # pm2 state lives under the runtime user's home
            home = f"/home/{self.run_as_user}"
            parts += [f"export HOME={home}", f"export PM2_HOME={home}/.pm2"]
        if cwd:
            parts.append(f"cd {shlex.quote(str(cwd))}")
        if env_file:
            parts.append(f". {shlex.quote(str(env_file))}")
        parts.append('pm2 ' + ' '.join(shlex.quote(str(arg)) for arg in pm2_args))
        script = '; '.join(parts)
        return self.runner(self._build_cmd(script), capture_output=True, text=True)

    def _check(self, result, operation):
        if result.returncode != 0:
            raise ProcessStartError(f"pm2 {operation} failed (exit {result.returncode}): {result.stderr.strip()}")
        return result.stdout

    def start_or_reload(self, name, cwd, env_file, ecosystem):
        result = self._run(['startOrReload', ecosystem, '--only', name, '--update-env'], cwd, env_file)
        return self._check(result, 'startOrReload')

    def start(self, name, cwd, env_file, ecosystem):
        result = self._run(['start', ecosystem, '--only', name, '--update-env'], cwd, env_file)
        return self._check(result, 'start')

    def delete(self, name):
        """Remove a process; returns False when it was not running."""
        return self._run(['delete', name]).returncode == 0

    def save(self):
        return self._check(self._run(['save']), 'save')

    def describe(self, name):
        result = self._run(['describe', name])
        return result.stdout if result.returncode == 0 else result.stderr


class ProcessController:

    def __init__(self, supervisor):
        self.supervisor = supervisor

    def start(self, context, cwd, env_file):
        """
        Start the service's process from cwd (the active pointer) with the
        materialized env, then persist the supervisor's process list.

        Returns:
            Supervisor's description of the running process
        """
        name = context.process_name
        ecosystem = context.ecosystem_file

        if context.restart_strategy == 'reload':
            self.supervisor.start_or_reload(name, cwd, env_file, ecosystem)
        elif context.restart_strategy == 'replace':
            if self.supervisor.delete(name):
                print(f"Deleted existing process {name}")
            self.supervisor.start(name, cwd, env_file, ecosystem)
        else:
            raise ProcessStartError(f"Unknown restart strategy: {context.restart_strategy}")

        self.supervisor.save()
        description = self.supervisor.describe(name)
        return '\n'.join(description.splitlines()[:DESCRIBE_LINES])
