#!/usr/bin/env python3
"""
Dispatch payload - the shell commands each instance runs.

The payload only prepares the runtime user and hands the serialized host
context to the host-side entry point; all deployment logic lives there.
"""

import json
import shlex

from ..models import DispatchPayload


def build_commands(context, agent_command):
    user = context.run_as_user
    commands = ['set -euo pipefail']
    if context.region:
        commands.append(f"export AWS_REGION={shlex.quote(context.region)}")

    # Ensure runtime user
    if user:
        quoted = shlex.quote(user)
        commands += [
            f"if ! getent group {quoted} >/dev/null 2>&1; then groupadd --system {quoted}; fi",
            f"if ! id -u {quoted} >/dev/null 2>&1; then useradd --system --gid {quoted} "
            f"--create-home --home-dir /home/{user} --shell /bin/bash {quoted}; fi",
        ]

    context_json = json.dumps(context.to_dict(), sort_keys=True)
    commands.append(f"{agent_command} --context {shlex.quote(context_json)}")
    commands.append(f"echo Deployment finished: {shlex.quote(context.service)} {shlex.quote(context.release_id)}")
    return commands


def build_payload(context, agent_command='python3 -m rollout.host'):
    comment = f"Deploy {context.service} {context.release_id} ({context.environment})"
    return DispatchPayload(
        commands=build_commands(context, agent_command),
        comment=comment,
        context=context,
    )


def render_payload(payload):
    """JSON document in the shape the AWS-RunShellScript document expects."""
    return json.dumps({'commands': payload.commands}, indent=2)
