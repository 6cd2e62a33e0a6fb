#!/usr/bin/env python3
"""
Local parameter store for development and tests.

Parameters are full names mapped to values, e.g.
    /dev/ride/backend-api/PORT: "3000"
either passed in directly or loaded from a YAML file.
"""

from pathlib import Path

import yaml

from .base import ParameterStore, parameter_key
from ..errors import ConfigStoreError


class LocalParameterStore(ParameterStore):

    def __init__(self, parameters=None, parameter_file=None):
        self.parameters = dict(parameters or {})
        self.parameter_file = Path(parameter_file) if parameter_file else None

    def _load(self):
        if self.parameter_file is None:
            return self.parameters
        if not self.parameter_file.exists():
            return {}
        try:
            with open(self.parameter_file, 'r') as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigStoreError(f"Cannot read parameter file {self.parameter_file}: {e}")

    def get_parameters(self, path):
        prefix = path.rstrip('/') + '/'
        return {
            parameter_key(name): str(value)
            for name, value in self._load().items()
            if name.startswith(prefix)
        }
