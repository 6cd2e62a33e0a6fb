#!/usr/bin/env python3
"""
Base interface for runtime configuration stores.
"""


class ParameterStore:
    """Path-scoped key/value store for runtime configuration."""

    def get_parameters(self, path):
        """
        Return every parameter under path (recursive, decrypted) as
        {key: value}, keyed by the last segment of the parameter name.
        An empty dict means nothing is stored there.

        Raises:
            ConfigStoreError: the store could not be queried
        """
        raise NotImplementedError

    def has_parameters(self, path):
        """Cheap existence check used by the deploy preflight."""
        return bool(self.get_parameters(path))


def parameter_key(name):
    return name.rstrip('/').split('/')[-1]
