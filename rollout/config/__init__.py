"""
Configuration loading and validation package.

This package loads the deployment config (packaged defaults, local
overrides, environment knobs) and validates it against a JSON schema.
"""

from .settings import build_host_context, get_service_profile, load_config
from .validation import require_valid_config, validate_config, validate_release_id

__all__ = [
    'build_host_context', 'get_service_profile', 'load_config',
    'require_valid_config', 'validate_config', 'validate_release_id',
]
