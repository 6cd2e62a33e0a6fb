#!/usr/bin/env python3
"""
Rolling Deployment Orchestrator
Pushes one release of one service onto every matching instance, a few
hosts at a time, and reports a single outcome.
"""

import argparse
import os
import sys

from .dispatcher import FleetDispatcher
from .monitor import DeploymentMonitor
from .utils import env_flag, print_phase, save_deployment_record
from ..config import (
    build_host_context, get_service_profile, load_config,
    require_valid_config, validate_release_id
)
from ..errors import ConfigError, DeploymentError, FetchError
from ..executors import build_payload, get_transport, render_payload
from ..models import JobOutcome, JobStatus, TargetSelector
from ..parameters import get_parameter_store
from ..storage import get_storage_backend


class Orchestrator:
    """Control-plane side of a rollout: plan, preflight, dispatch, monitor."""

    def __init__(self, config, transport, parameters, storage, sleep=None, cancel_event=None):
        deployment = config['deployment']
        monitor = config.get('monitor', {})
        self.config = config
        self.transport = transport
        self.parameters = parameters
        self.storage = storage
        self.agent_command = deployment.get('agent_command', 'python3 -m rollout.host')
        self.dispatcher = FleetDispatcher(
            transport, parameters,
            max_concurrency=deployment.get('max_concurrency', 1),
            max_errors=deployment.get('max_errors', 0)
        )
        self.monitor = DeploymentMonitor(
            transport,
            interval=monitor.get('interval', 10),
            max_attempts=monitor.get('attempts', 120),
            sleep=sleep, cancel_event=cancel_event
        )

    @classmethod
    def from_config(cls, config, sleep=None, cancel_event=None):
        """Wire the configured transport, parameter store and blob store."""
        deployment = config['deployment']
        local = config.get('local', {})
        parameters = get_parameter_store(
            deployment['parameter_backend'], region=deployment.get('region', ''),
            parameter_file=str(local.get('parameter_file', ''))
        )
        storage = get_storage_backend(
            deployment['storage_backend'], bucket=deployment.get('bucket', ''),
            region=deployment.get('region', ''), root=str(local.get('storage_root', ''))
        )
        return cls(config, get_transport(config), parameters, storage,
                   sleep=sleep, cancel_event=cancel_event)

    def plan(self, release_id, environment, service, artifact_namespace=None,
             needs_extra_bootstrap=None, process_name=None, service_tag_key=None):
        """
        Resolve the host context and target selector for one request.

        Returns:
            (HostContext, TargetSelector)
        """
        errors = validate_release_id(release_id)
        if errors:
            raise ConfigError(errors[0])
        owner = self._longer_service_owning(service, release_id)
        if owner:
            raise ConfigError(f"Release id '{release_id}' names a bundle of service '{owner}', not '{service}'")
        if not environment:
            raise ConfigError("Environment is required (e.g. dev, staging, prod)")

        profile = get_service_profile(
            self.config, service,
            artifact_namespace=artifact_namespace,
            needs_extra_bootstrap=needs_extra_bootstrap,
            process_name=process_name,
            service_tag_key=service_tag_key
        )
        context = build_host_context(self.config, profile, release_id, environment)
        selector = TargetSelector.for_service(
            environment, service,
            service_tag_key=profile.service_tag_key,
            managed_by=self.config['deployment'].get('managed_by', 'terraform')
        )
        return context, selector

    def deploy(self, release_id, environment, service, **overrides):
        """
        Run one deployment job end to end.

        Preflight and dispatch failures come back as a Failed outcome with
        the error attached; nothing has been sent to any host in that case.
        """
        print_phase("DEPLOYMENT", f"{service} {release_id} -> {environment}")
        try:
            context, selector = self.plan(release_id, environment, service, **overrides)
            print(f"Artifact: {context.release.artifact_key}")
            print(f"Targets:  {selector.describe()}")

            print_phase("PREFLIGHT")
            targets = self.dispatcher.preflight(context, selector)

            print_phase("DISPATCH")
            payload = build_payload(context, self.agent_command)
            command_id = self.dispatcher.dispatch(targets, payload)
        except DeploymentError as e:
            outcome = JobOutcome(JobStatus.FAILED, error=e)
            self.report(outcome)
            return outcome

        print_phase("MONITOR", command_id)
        outcome = self.monitor.wait(command_id, targets)
        self.report(outcome)
        return outcome

    def validate(self, release_id, environment, service, **overrides):
        """Preflight only: config scope and target resolution."""
        print_phase("VALIDATING DEPLOYMENT PREREQUISITES")
        context, selector = self.plan(release_id, environment, service, **overrides)
        print(f"[1/2] Checking runtime configuration ({context.param_path})...")
        self.dispatcher.check_config(context)
        print(f"[2/2] Resolving targets ({selector.describe()})...")
        targets = self.dispatcher.resolve(selector)
        print("=" * 60)
        print("ALL VALIDATION CHECKS PASSED")
        print("=" * 60)
        return targets

    def render(self, release_id, environment, service, **overrides):
        """The dispatch payload as the JSON document the transport sends."""
        context, _ = self.plan(release_id, environment, service, **overrides)
        return render_payload(build_payload(context, self.agent_command))

    def status(self, command_id):
        """Monitor a job that was dispatched earlier."""
        print_phase("MONITOR", command_id)
        outcome = self.monitor.wait(command_id)
        self.report(outcome)
        return outcome

    def cancel(self, command_id):
        self.transport.cancel(command_id)
        print(f"[OK] Cancel requested for {command_id}")

    def _longer_service_owning(self, service, release_id):
        """Declared service whose bundles share this service's key prefix and match this id."""
        name = f"{service}-{release_id}"
        for other in self.config.get('services', {}):
            if other.startswith(f"{service}-") and name.startswith(f"{other}-"):
                return other
        return None

    def list_releases(self, service, artifact_namespace=None):
        """Release ids with both a bundle and a checksum in the blob store, oldest first."""
        profile = get_service_profile(self.config, service, artifact_namespace=artifact_namespace)
        prefix = f"{profile.artifact_namespace}/{service}-"
        keys = set(self.storage.list_keys(prefix))

        releases = []
        for key in keys:
            if not key.endswith('.tar.gz'):
                continue
            release_id = key[len(prefix):-len('.tar.gz')]
            # Ids not starting with a digit may belong to a longer service name
            if not release_id[:1].isdigit() or self._longer_service_owning(service, release_id):
                continue
            if not validate_release_id(release_id) and f"{prefix}{release_id}.sha256" in keys:
                releases.append(release_id)
        return sorted(releases)

    def rollback(self, release_id, environment, service, **overrides):
        """
        Redeploy an earlier release. Its artifacts must still be published,
        otherwise nothing is dispatched.
        """
        print_phase("ROLLBACK", f"{service} -> {release_id}")
        try:
            context, _ = self.plan(release_id, environment, service, **overrides)
            release = context.release
            for key in (release.artifact_key, release.checksum_key):
                if not self.storage.get_metadata(key).get('exists'):
                    raise FetchError(f"Release {release_id} is not available: missing {key}")
                print(f"  [OK] {key}")
        except DeploymentError as e:
            outcome = JobOutcome(JobStatus.FAILED, error=e)
            self.report(outcome)
            return outcome
        return self.deploy(release_id, environment, service, **overrides)

    def report(self, outcome):
        print("=" * 60)
        if outcome.succeeded:
            print(f"DEPLOYMENT SUCCEEDED ({len(outcome.hosts)} host(s))")
        else:
            print(f"DEPLOYMENT {outcome.status.value.upper()}")
            for host in outcome.diagnostics:
                print(f"  {host.instance_id}: {host.status.value}")
            if outcome.error:
                print(f"  {outcome.error.kind}: {outcome.error}")
        print("=" * 60)


def deploy(release_id, environment, service, artifact_namespace=None, needs_extra_bootstrap=None,
           config=None):
    """
    Deploy one release of one service to every matching instance.

    Args:
        release_id: Release identifier, e.g. 20260124-120000
        environment: Target environment tag value
        service: Service name (also the Service tag value)
        artifact_namespace: Blob store prefix; defaults to the service's declared one
        needs_extra_bootstrap: Install bootstrap files before activation
        config: Merged config dict; loaded from disk when omitted

    Returns:
        JobOutcome
    """
    try:
        if config is None:
            config = load_config()
        require_valid_config(config)
        orchestrator = Orchestrator.from_config(config)
    except DeploymentError as e:
        return JobOutcome(JobStatus.FAILED, error=e)
    return orchestrator.deploy(
        release_id, environment, service,
        artifact_namespace=artifact_namespace,
        needs_extra_bootstrap=needs_extra_bootstrap
    )


def _overrides(args):
    if args.needs_extra_bootstrap:
        needs_extra_bootstrap = True
    elif os.environ.get('NEEDS_RDS_CA'):
        needs_extra_bootstrap = env_flag(os.environ['NEEDS_RDS_CA'])
    else:
        needs_extra_bootstrap = None
    return {
        'artifact_namespace': args.namespace or None,
        'needs_extra_bootstrap': needs_extra_bootstrap,
        'process_name': args.process_name or None,
        'service_tag_key': args.service_tag_key or None,
    }


def main(argv=None):
    """Main entry point - parse command line and run the requested command."""
    parser = argparse.ArgumentParser(
        description='Rolling Deployment Orchestrator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Deploy a release (values may also come from RELEASE_ID, ENVIRONMENT, SERVICE_NAME)
  rollout deploy --release 20260124-120000 --environment dev --service backend-api

  # Check config scope and targets without touching any host
  rollout validate --release 20260124-120000 --environment dev --service backend-api

  # Inspect or stop an earlier job
  rollout status --command-id <id>
  rollout cancel --command-id <id>

  # List published releases and roll back to one of them
  rollout releases --service backend-api
  rollout rollback --release 20260120-090000 --environment dev --service backend-api
        """
    )
    parser.add_argument('command',
                        choices=['deploy', 'validate', 'render', 'status', 'cancel', 'releases', 'rollback'],
                        help='Deployment command')
    parser.add_argument('--release', default=os.environ.get('RELEASE_ID', ''), help='Release id (RELEASE_ID)')
    parser.add_argument('--environment', default=os.environ.get('ENVIRONMENT', ''),
                        help='Target environment (ENVIRONMENT)')
    parser.add_argument('--service', default=os.environ.get('SERVICE_NAME', ''), help='Service name (SERVICE_NAME)')
    parser.add_argument('--namespace', default=os.environ.get('ARTIFACT_NAMESPACE', ''),
                        help='Artifact namespace in the blob store (ARTIFACT_NAMESPACE)')
    parser.add_argument('--process-name', default=os.environ.get('PM2_APP_NAME', ''),
                        help='Supervised process name (PM2_APP_NAME)')
    parser.add_argument('--service-tag-key', default=os.environ.get('SSM_TAG_KEY_SERVICE', ''),
                        help='Instance tag key holding the service name (SSM_TAG_KEY_SERVICE)')
    parser.add_argument('--needs-extra-bootstrap', action='store_true',
                        help='Install bootstrap files before activation (NEEDS_RDS_CA)')
    parser.add_argument('--command-id', help='Command id of a dispatched job')
    parser.add_argument('--config', help='Deployment config file (ROLLOUT_CONFIG)')
    parser.add_argument('--record', help='Write a YAML deployment record to this path')
    args = parser.parse_args(argv)

    # Validate required arguments for each command
    if args.command in ['deploy', 'validate', 'render', 'rollback']:
        for name, env_name in (('release', 'RELEASE_ID'), ('environment', 'ENVIRONMENT'),
                               ('service', 'SERVICE_NAME')):
            if not getattr(args, name):
                parser.error(f"{args.command} requires --{name} (or {env_name})")
    if args.command in ['status', 'cancel'] and not args.command_id:
        parser.error(f"{args.command} requires --command-id")
    if args.command == 'releases' and not args.service:
        parser.error("releases requires --service (or SERVICE_NAME)")

    try:
        config = require_valid_config(load_config(args.config))
        orchestrator = Orchestrator.from_config(config)
    except DeploymentError as e:
        print(f"ERROR: {e.kind}: {e}", file=sys.stderr)
        return 1

    request = (args.release, args.environment, args.service)
    overrides = _overrides(args)

    try:
        if args.command in ['deploy', 'rollback', 'status']:
            if args.command == 'deploy':
                outcome = orchestrator.deploy(*request, **overrides)
            elif args.command == 'rollback':
                outcome = orchestrator.rollback(*request, **overrides)
            else:
                outcome = orchestrator.status(args.command_id)
            if outcome.error:
                print(f"ERROR: {outcome.error.kind}: {outcome.error}", file=sys.stderr)
            if args.record:
                save_deployment_record(outcome, {
                    'command': args.command,
                    'release_id': args.release,
                    'environment': args.environment,
                    'service': args.service,
                }, args.record)
            return outcome.exit_code
        elif args.command == 'validate':
            orchestrator.validate(*request, **overrides)
        elif args.command == 'render':
            print(orchestrator.render(*request, **overrides))
        elif args.command == 'cancel':
            orchestrator.cancel(args.command_id)
        elif args.command == 'releases':
            releases = orchestrator.list_releases(args.service, args.namespace or None)
            if not releases:
                print(f"No releases published for {args.service}")
            for release_id in releases:
                print(release_id)
    except DeploymentError as e:
        print(f"ERROR: {e.kind}: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
