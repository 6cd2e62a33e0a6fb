#!/usr/bin/env python3
"""
Runtime configuration - resolve a service's key/value set from the
parameter store and hand it to the process supervisor as a short-lived
env file that never outlives the start step.
"""

import os
import re
import shlex
import sys
import tempfile
from contextlib import contextmanager

from ..errors import ConfigMissingError, ProcessStartError


ENV_NAME_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


class ConfigLoader:

    def __init__(self, store):
        self.store = store

    def load(self, path, required=True):
        """
        Resolve every parameter under path.

        Raises:
            ConfigMissingError: nothing stored and the service requires config
            ConfigStoreError: the store itself failed
        """
        values = self.store.get_parameters(path)
        if not values:
            if required:
                raise ConfigMissingError(f"No runtime configuration found under {path}")
            print(f"[deploy] no runtime configuration under {path}, continuing with defaults")
        return values


def render_env_file(values):
    lines = []
    for key in sorted(values):
        if not ENV_NAME_PATTERN.match(key):
            print(f"WARNING: skipping parameter '{key}': not a valid environment variable name",
                  file=sys.stderr)
            continue
        lines.append(f"export {key}={shlex.quote(values[key])}")
    return '\n'.join(lines) + '\n'


@contextmanager
def materialized_environment(values, service, directory=None, ids=None):
    """
    Write values to a 0600 temp env file and remove it on every exit path.

    Yields:
        Path of the env file

    Raises:
        ProcessStartError: the env file could not be written
    """
    try:
        fd, path = tempfile.mkstemp(prefix=f"{service}-env.", dir=directory)
    except OSError as e:
        raise ProcessStartError(f"Could not create env file for {service}: {e}")
    try:
        try:
            with os.fdopen(fd, 'w') as f:
                os.fchmod(f.fileno(), 0o600)
                if ids:
                    os.fchown(f.fileno(), *ids)
                f.write(render_env_file(values))
        except OSError as e:
            raise ProcessStartError(f"Could not write env file for {service}: {e}")
        yield path
    finally:
        if os.path.exists(path):
            os.remove(path)
