#!/usr/bin/env python3
"""
SSM Run Command transport - reaches instances through the SSM agent,
no SSH or inbound network access required.
"""

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .base import BaseTransport
from ..errors import DispatchError
from ..models import Invocation, JobStatus, Target


# send-command accepts at most 50 instance ids per call
MAX_INSTANCE_IDS = 50
MAX_COMMENT_LENGTH = 100

STATUS_MAP = {
    'Pending': JobStatus.PENDING,
    'Delayed': JobStatus.PENDING,
    'InProgress': JobStatus.IN_PROGRESS,
    'Cancelling': JobStatus.IN_PROGRESS,
    'Success': JobStatus.SUCCESS,
    'Failed': JobStatus.FAILED,
    'Cancelled': JobStatus.CANCELLED,
    'TimedOut': JobStatus.TIMED_OUT,
}


class SSMTransport(BaseTransport):
    """
    Targets are resolved once per job from EC2 tags and then addressed by
    instance id, so instances launched mid-deploy are not picked up.
    """

    def __init__(self, region=None, document_name='AWS-RunShellScript', execution_timeout=3600,
                 ssm_client=None, ec2_client=None):
        self.region = region
        self.document_name = document_name
        self.execution_timeout = execution_timeout
        self._ssm = ssm_client
        self._ec2 = ec2_client

    def _get_ssm(self):
        if self._ssm is None:
            self._ssm = boto3.client('ssm', region_name=self.region or None)
        return self._ssm

    def _get_ec2(self):
        if self._ec2 is None:
            self._ec2 = boto3.client('ec2', region_name=self.region or None)
        return self._ec2

    def resolve_targets(self, selector):
        filters = [{'Name': f"tag:{key}", 'Values': [value]} for key, value in selector.tags]
        filters.append({'Name': 'instance-state-name', 'Values': ['running']})

        targets = []
        try:
            paginator = self._get_ec2().get_paginator('describe_instances')
            for page in paginator.paginate(Filters=filters):
                for reservation in page.get('Reservations', []):
                    for instance in reservation.get('Instances', []):
                        tags = {tag['Key']: tag['Value'] for tag in instance.get('Tags', [])}
                        targets.append(Target(instance['InstanceId'], tags))
        except (ClientError, BotoCoreError) as e:
            raise DispatchError(f"Resolving targets ({selector.describe()}) failed: {e}")

        # Double-check tags client-side before addressing instances by id
        return [t for t in targets if selector.matches(t.tags)]

    def dispatch(self, targets, payload, max_concurrency=1, max_errors=0):
        if not targets:
            raise DispatchError("No targets to dispatch to")
        if len(targets) > MAX_INSTANCE_IDS:
            raise DispatchError(
                f"{len(targets)} targets exceed the {MAX_INSTANCE_IDS}-instance limit of one command"
            )

        try:
            response = self._get_ssm().send_command(
                InstanceIds=[t.instance_id for t in targets],
                DocumentName=self.document_name,
                Comment=payload.comment[:MAX_COMMENT_LENGTH],
                Parameters={
                    'commands': payload.commands,
                    'executionTimeout': [str(self.execution_timeout)],
                },
                MaxConcurrency=str(max_concurrency),
                MaxErrors=str(max_errors),
            )
        except (ClientError, BotoCoreError) as e:
            raise DispatchError(f"send-command failed: {e}")

        return response['Command']['CommandId']

    def list_invocations(self, command_id):
        invocations = []
        try:
            paginator = self._get_ssm().get_paginator('list_command_invocations')
            for page in paginator.paginate(CommandId=command_id):
                for item in page.get('CommandInvocations', []):
                    status = STATUS_MAP.get(item.get('Status'), JobStatus.IN_PROGRESS)
                    invocations.append(Invocation(item['InstanceId'], status))
        except (ClientError, BotoCoreError) as e:
            raise DispatchError(f"list-command-invocations for {command_id} failed: {e}")
        return invocations

    def get_output(self, command_id, instance_id):
        try:
            response = self._get_ssm().get_command_invocation(CommandId=command_id, InstanceId=instance_id)
        except (ClientError, BotoCoreError) as e:
            raise DispatchError(f"get-command-invocation for {instance_id} failed: {e}")
        return response.get('StandardOutputContent', ''), response.get('StandardErrorContent', '')

    def cancel(self, command_id):
        try:
            self._get_ssm().cancel_command(CommandId=command_id)
        except (ClientError, BotoCoreError) as e:
            raise DispatchError(f"cancel-command for {command_id} failed: {e}")
        print(f"Cancel requested for {command_id}")
