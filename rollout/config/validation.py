#!/usr/bin/env python3
"""
Deployment configuration validation.
Validates the merged config against the JSON schema plus deployment rules.
"""

import json
import re
from pathlib import Path

import jsonschema

from ..errors import ConfigError


SCHEMA_FILE = Path(__file__).parent / 'deployment-config.schema.json'

# Release ids become directory names and shell words on the host
RELEASE_ID_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]*$')


def load_schema(schema_file=SCHEMA_FILE):
    with open(schema_file, 'r') as f:
        return json.load(f)


def validate_against_schema(config, schema=None):
    """
    Validate config against the JSON schema.
    Returns (is_valid, errors_list)
    """
    if schema is None:
        schema = load_schema()

    validator = jsonschema.Draft7Validator(schema)
    errors = []
    for error in sorted(validator.iter_errors(config), key=lambda e: list(e.path)):
        error_path = ' -> '.join(str(p) for p in error.path) if error.path else 'root'
        errors.append(f"Schema validation failed at '{error_path}': {error.message}")
    return len(errors) == 0, errors


def check_rules(config):
    """Rules the schema cannot express (cross-field requirements)."""
    errors = []
    deployment = config.get('deployment', {})

    # RULE 1: S3 storage needs a bucket
    if deployment.get('storage_backend') == 's3' and not deployment.get('bucket'):
        errors.append("S3 storage backend requires deployment.bucket (or S3_BUCKET_ARTIFACT)")

    # RULE 2: parameter paths are /{environment}/{project}/{service}
    if not deployment.get('project'):
        errors.append("deployment.project (or PROJECT_NAME) is required to scope runtime configuration")

    # RULE 3: AWS backends need a region
    uses_aws = 'ssm' in (deployment.get('parameter_backend'), deployment.get('transport')) \
        or deployment.get('storage_backend') == 's3'
    if uses_aws and not deployment.get('region'):
        errors.append("AWS backends require deployment.region (or AWS_REGION)")

    # RULE 4: local transport needs a host inventory
    if deployment.get('transport') == 'local' and not config.get('local', {}).get('hosts'):
        errors.append("Local transport requires local.hosts to list at least one host")

    return errors


def validate_config(config):
    """
    Validate a merged deployment config.
    Uses JSON schema validation + deployment rules.
    """
    if not config:
        return False, ["Deployment config is empty"]

    is_valid, schema_errors = validate_against_schema(config)
    if not is_valid:
        return False, schema_errors

    errors = check_rules(config)
    return len(errors) == 0, errors


def validate_release_id(release_id):
    if not release_id:
        return ["Release id is required (e.g. 20260124-120000)"]
    if not RELEASE_ID_PATTERN.match(release_id):
        return [f"Invalid release id '{release_id}': use letters, digits, '.', '_' or '-'"]
    return []


def require_valid_config(config):
    """Raise ConfigError listing every problem found."""
    is_valid, errors = validate_config(config)
    if not is_valid:
        raise ConfigError("Invalid deployment config:\n" + "\n".join(f"  - {e}" for e in errors))
    return config
