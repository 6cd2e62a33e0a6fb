#!/usr/bin/env python3
"""
Configuration loading - packaged defaults, local overrides, environment knobs.
"""

import dataclasses
import os
from pathlib import Path

import yaml

from ..errors import ConfigError
from ..models import HostContext, ServiceProfile


DEFAULT_CONFIG_FILE = Path(__file__).parent / 'deployment-config.yaml'

# Environment knobs that override deployment settings: env var -> (key, type)
ENV_OVERRIDES = {
    'AWS_REGION': ('region', str),
    'S3_BUCKET_ARTIFACT': ('bucket', str),
    'PROJECT_NAME': ('project', str),
    'ROLLING_MAX_CONCURRENCY': ('max_concurrency', int),
}


def load_yaml(file_path):
    with open(file_path, 'r') as f:
        return yaml.safe_load(f) or {}


def deep_merge(base, override):
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def apply_environment_overrides(config, environ=None):
    environ = os.environ if environ is None else environ
    deployment = dict(config.get('deployment', {}))

    for env_name, (key, cast) in ENV_OVERRIDES.items():
        raw = environ.get(env_name, '').strip()
        if not raw:
            continue
        try:
            deployment[key] = cast(raw)
        except ValueError:
            raise ConfigError(f"{env_name} must be {cast.__name__}, got '{raw}'")

    return {**config, 'deployment': deployment}


def load_config(config_file=None, environ=None):
    """
    Load configuration with optional local overrides.
    - Default: packaged deployment-config.yaml (or --config / ROLLOUT_CONFIG)
    - DEPLOYMENT_ENV=local: merges deployment-config.local.yaml overrides
    - Environment knobs (AWS_REGION, S3_BUCKET_ARTIFACT, ...) win last
    """
    environ = os.environ if environ is None else environ
    base_path = Path(config_file or environ.get('ROLLOUT_CONFIG') or DEFAULT_CONFIG_FILE)
    if not base_path.exists():
        raise ConfigError(f"Config file not found: {base_path}")

    config = load_yaml(base_path)

    if environ.get('DEPLOYMENT_ENV', '').strip() == 'local':
        override_path = base_path.with_name(base_path.stem + '.local.yaml')
        if override_path.exists():
            config = deep_merge(config, load_yaml(override_path))

    return apply_environment_overrides(config, environ)


def get_service_profile(config, service, artifact_namespace=None, needs_extra_bootstrap=None,
                        process_name=None, service_tag_key=None):
    """
    Resolve the declared profile for a service.
    Services missing from the config may still be deployed when the caller
    names their artifact namespace; they get the default profile.
    """
    declared = dict(config.get('services', {}).get(service) or {})
    if artifact_namespace:
        declared['artifact_namespace'] = artifact_namespace
    if needs_extra_bootstrap is not None:
        declared['needs_extra_bootstrap'] = needs_extra_bootstrap
    if process_name:
        declared['process_name'] = process_name
    if service_tag_key:
        declared['service_tag_key'] = service_tag_key

    if not declared.get('artifact_namespace'):
        raise ConfigError(
            f"Unknown service '{service}': declare it under services: in the config "
            f"or pass an artifact namespace"
        )
    known = {f.name for f in dataclasses.fields(ServiceProfile)}
    return ServiceProfile(name=service, **{k: v for k, v in declared.items() if k in known})


def build_host_context(config, profile, release_id, environment):
    """Assemble the per-host context from merged config + service profile."""
    deployment = config['deployment']
    local = config.get('local', {})
    return HostContext(
        release_id=release_id,
        environment=environment,
        project=deployment.get('project', ''),
        service=profile.name,
        artifact_namespace=profile.artifact_namespace,
        process_name=profile.process_name,
        bucket=deployment.get('bucket', ''),
        region=deployment.get('region', ''),
        storage_backend=deployment['storage_backend'],
        storage_root=str(local.get('storage_root', '')),
        parameter_backend=deployment['parameter_backend'],
        parameter_file=str(local.get('parameter_file', '')),
        app_root=deployment['app_root'],
        run_as_user=deployment.get('run_as_user', ''),
        port=profile.port,
        health_path=profile.health_path,
        health_interval=config['health']['interval'],
        health_attempts=config['health']['attempts'],
        restart_strategy=profile.restart_strategy,
        config_required=profile.config_required,
        needs_extra_bootstrap=profile.needs_extra_bootstrap,
        bootstrap_files=list(config.get('bootstrap_files', [])) if profile.needs_extra_bootstrap else [],
        retention=profile.retention,
    )
