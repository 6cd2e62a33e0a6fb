#!/usr/bin/env python3
"""S3 storage backend for release artifacts."""

from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .base import StorageBackend
from ..errors import FetchError


class S3Storage(StorageBackend):
    """S3 storage backend (instance role or environment credentials)."""

    def __init__(self, bucket, region=None, endpoint_url=None, client=None):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self._client = client

    def _get_client(self):
        """Lazy initialization of boto3 client."""
        if self._client is None:
            self._client = boto3.client(
                's3',
                endpoint_url=self.endpoint_url,
                region_name=self.region or None
            )
        return self._client

    def _get_s3_url(self, storage_key):
        return f"s3://{self.bucket}/{storage_key}"

    def fetch_file(self, storage_key, local_path):
        s3_client = self._get_client()
        s3_url = self._get_s3_url(storage_key)
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        print(f"Downloading from S3: {s3_url}")
        try:
            s3_client.download_file(self.bucket, storage_key, str(local_path))
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise FetchError(f"S3 download of {s3_url} failed ({code}): {e}")
        except BotoCoreError as e:
            raise FetchError(f"S3 download of {s3_url} failed: {e}")
        print("[OK] Downloaded")
        return str(local_path)

    def get_metadata(self, storage_key):
        s3_client = self._get_client()

        try:
            response = s3_client.head_object(Bucket=self.bucket, Key=storage_key)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('404', 'NoSuchKey', 'NotFound'):
                return {'exists': False}
            raise FetchError(f"S3 head of {self._get_s3_url(storage_key)} failed: {e}")
        return {
            'storage_mode': 's3',
            's3_bucket': self.bucket,
            's3_key': storage_key,
            'exists': True,
            'size': response.get('ContentLength'),
            'last_modified': response.get('LastModified')
        }

    def list_keys(self, prefix):
        s3_client = self._get_client()
        keys = []
        try:
            paginator = s3_client.get_paginator('list_objects_v2')
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj['Key'] for obj in page.get('Contents', []))
        except (ClientError, BotoCoreError) as e:
            raise FetchError(f"S3 listing of {self._get_s3_url(prefix)} failed: {e}")
        return sorted(keys)
