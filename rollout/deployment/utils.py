#!/usr/bin/env python3
"""
Deployment utilities - shared helper functions.
"""

from datetime import datetime, timezone
from pathlib import Path

import yaml


def print_phase(phase_name, detail=None):
    """Helper to print phase headers."""
    print(f"\n{'='*60}")
    if detail:
        print(f"{phase_name} ({detail})")
    else:
        print(phase_name)
    print(f"{'='*60}")


def env_flag(value, default=False):
    if value is None or value == '':
        return default
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def save_deployment_record(outcome, request, output_path):
    """Write a YAML record of a finished deployment for audit/rollback reference."""
    record = {
        'request': request,
        'outcome': outcome.to_record(),
        'finished_at': datetime.now(timezone.utc).isoformat(),
    }
    Path(output_path).parent.mkdir(exist_ok=True, parents=True)
    with open(output_path, 'w') as f:
        yaml.dump(record, f, default_flow_style=False, sort_keys=False)
    print(f"Saved deployment record: {output_path}")
    return record
