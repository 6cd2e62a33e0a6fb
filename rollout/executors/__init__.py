#!/usr/bin/env python3
"""
Transport factory and package exports.
"""

from .local import InProcessRunner, LocalTransport, ShellRunner
from .payload import build_payload, render_payload
from .ssm import SSMTransport
from ..errors import ConfigError


def get_transport(config):
    """
    Factory function to create the configured transport.

    Args:
        config: Deployment configuration dict

    Returns:
        SSMTransport or LocalTransport instance
    """
    deployment = config['deployment']
    mode = deployment.get('transport', 'ssm')
    if mode == 'ssm':
        return SSMTransport(
            region=deployment.get('region'),
            execution_timeout=deployment.get('execution_timeout', 3600)
        )
    elif mode == 'local':
        return LocalTransport(config.get('local', {}).get('hosts', []))
    raise ConfigError(f"Unknown transport: {mode}")


# Package exports
__all__ = [
    'InProcessRunner', 'LocalTransport', 'SSMTransport', 'ShellRunner',
    'build_payload', 'get_transport', 'render_payload',
]
