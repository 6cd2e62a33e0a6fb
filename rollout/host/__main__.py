#!/usr/bin/env python3
"""
Host-side entry point, invoked by the dispatch payload on each instance:

    python3 -m rollout.host --context '{"release_id": ..., ...}'
"""

import argparse
import json
import sys

from . import build_procedure
from ..errors import DeploymentError
from ..models import HostContext


def load_context(args):
    if args.context_file:
        with open(args.context_file, 'r') as f:
            return HostContext.from_dict(json.load(f))
    return HostContext.from_dict(json.loads(args.context))


def main(argv=None):
    parser = argparse.ArgumentParser(description='Run one release onto this host')
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument('--context', help='Host context as a JSON object')
    group.add_argument('--context-file', help='Path to a JSON file holding the host context')
    args = parser.parse_args(argv)

    try:
        context = load_context(args)
    except (ValueError, TypeError, OSError) as e:
        print(f"ERROR: invalid host context: {e}", file=sys.stderr)
        return 1

    try:
        report = build_procedure(context).run()
    except DeploymentError as e:
        print(f"ERROR: {e.kind}: {e}", file=sys.stderr)
        return 1

    for step in report.steps:
        marker = 'OK' if step.ok else step.error_kind
        print(f"  [{marker}] {step.step}")
    failed = report.failed_step
    if failed:
        print(f"ERROR: halted at {failed.step}: {failed.error_kind}: {failed.detail}", file=sys.stderr)
        return 1
    return 0 if report.succeeded else 1


if __name__ == '__main__':
    sys.exit(main())
