#!/usr/bin/env python3
"""SSM Parameter Store backed runtime configuration."""

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .base import ParameterStore, parameter_key
from ..errors import ConfigStoreError


class SSMParameterStore(ParameterStore):

    def __init__(self, region=None, client=None):
        self.region = region
        self._client = client

    def _get_client(self):
        """Lazy initialization of boto3 client."""
        if self._client is None:
            self._client = boto3.client('ssm', region_name=self.region or None)
        return self._client

    def get_parameters(self, path):
        client = self._get_client()
        values = {}
        try:
            paginator = client.get_paginator('get_parameters_by_path')
            for page in paginator.paginate(Path=path, Recursive=True, WithDecryption=True):
                for parameter in page.get('Parameters', []):
                    values[parameter_key(parameter['Name'])] = parameter.get('Value', '')
        except (ClientError, BotoCoreError) as e:
            raise ConfigStoreError(f"Reading SSM parameters at {path} failed: {e}")
        return values

    def has_parameters(self, path):
        client = self._get_client()
        try:
            paginator = client.get_paginator('get_parameters_by_path')
            pages = paginator.paginate(
                Path=path, Recursive=True, WithDecryption=True,
                PaginationConfig={'MaxItems': 1}
            )
            # Pages may come back empty with a NextToken, so keep paging
            for page in pages:
                if page.get('Parameters'):
                    return True
        except (ClientError, BotoCoreError) as e:
            raise ConfigStoreError(f"Preflight read of SSM parameters at {path} failed: {e}")
        return False
