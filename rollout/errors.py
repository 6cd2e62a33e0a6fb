#!/usr/bin/env python3
"""
Error taxonomy for rollout deployments.

Per-host step errors stay local to one host; preflight errors mean nothing
was touched and the run can simply be retried after fixing the input.
"""


class DeploymentError(Exception):
    """Base class for every failure the deployer reports."""

    preflight = False
    post_side_effect = False

    @property
    def kind(self):
        return type(self).__name__


class ConfigError(DeploymentError):
    """Deployment configuration is invalid or incomplete."""

    preflight = True


class FetchError(DeploymentError):
    """An object could not be fetched from the blob store."""


class IntegrityError(DeploymentError):
    """Downloaded bundle does not match its published checksum."""


class ExtractionError(DeploymentError):
    """Release bundle could not be extracted."""


class ActivationError(DeploymentError):
    """Active pointer swap failed; the previous release is still active."""

    post_side_effect = True


class ConfigStoreError(DeploymentError):
    """The runtime configuration store could not be queried."""


class ConfigMissingError(DeploymentError):
    """No runtime configuration found for a service that requires it."""

    preflight = True


class ProcessStartError(DeploymentError):
    """Process supervisor failed to start the application."""

    post_side_effect = True


class HealthCheckTimeoutError(DeploymentError):
    """Application never reported healthy within the retry budget."""

    post_side_effect = True


class SelectorError(DeploymentError):
    """Target selector is missing a required tag."""

    preflight = True


class NoTargetsError(DeploymentError):
    """Target selector matched no instances."""

    preflight = True


class DispatchError(DeploymentError):
    """Remote command transport rejected or failed the dispatch."""


class PollTimeoutError(DeploymentError):
    """Job did not reach a terminal state within the polling budget."""
