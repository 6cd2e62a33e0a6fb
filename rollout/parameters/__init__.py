"""
Runtime configuration store package.

Path-scoped key/value stores the Config Loader resolves a service's
environment from (local YAML, SSM Parameter Store).
"""

from .local import LocalParameterStore
from .ssm import SSMParameterStore
from ..errors import ConfigError


def get_parameter_store(mode, region='', parameter_file=''):
    """Factory function to get appropriate parameter store."""
    if mode == 'local':
        return LocalParameterStore(parameter_file=parameter_file or './parameters.yaml')
    elif mode == 'ssm':
        return SSMParameterStore(region)
    raise ConfigError(f"Unknown parameter backend: {mode}")


__all__ = ['LocalParameterStore', 'SSMParameterStore', 'get_parameter_store']
