#!/usr/bin/env python3
"""
Fleet dispatcher - preflight checks, target resolution and the single
asynchronous dispatch of the per-host procedure.
"""

from ..errors import ConfigMissingError, NoTargetsError


class FleetDispatcher:

    def __init__(self, transport, parameters, max_concurrency=1, max_errors=0):
        self.transport = transport
        self.parameters = parameters
        self.max_concurrency = max_concurrency
        self.max_errors = max_errors

    def check_config(self, context):
        """Fail fast when a config-required service has nothing stored."""
        found = self.parameters.has_parameters(context.param_path)
        if found:
            print(f"  [OK] runtime configuration found under {context.param_path}")
        elif context.config_required:
            raise ConfigMissingError(
                f"No runtime configuration found under {context.param_path}. "
                f"Check ENVIRONMENT/PROJECT_NAME/SERVICE_NAME."
            )
        else:
            print(f"  [WARN] no runtime configuration under {context.param_path} (not required)")
        return found

    def resolve(self, selector):
        """Evaluate the selector once for this job."""
        targets = self.transport.resolve_targets(selector)
        if not targets:
            raise NoTargetsError(f"No running instances match {selector.describe()}")
        print(f"  [OK] {len(targets)} target(s)")
        for target in targets:
            print(f"    {target.instance_id}  {target.name}")
        return targets

    def preflight(self, context, selector):
        """Run every check that must pass before anything is sent to a host."""
        self.check_config(context)
        return self.resolve(selector)

    def dispatch(self, targets, payload):
        command_id = self.transport.dispatch(
            targets, payload,
            max_concurrency=self.max_concurrency,
            max_errors=self.max_errors
        )
        print(f"Dispatched {payload.comment}: CommandId={command_id} "
              f"(max_concurrency={self.max_concurrency}, max_errors={self.max_errors})")
        return command_id
