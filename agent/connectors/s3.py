"""S3 data connector built on boto3."""

from __future__ import annotations

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from agent.config import LoadSettings, get_load_settings

logger = logging.getLogger(__name__)


class S3ObjectWriter:
    """Each write uploads the whole payload as the object's new content."""

    def __init__(self, client, bucket: str, key: str):
        self._client = client
        self.bucket = bucket
        self.key = key

    def write(self, data: bytes) -> int:
        self._client.put_object(Bucket=self.bucket, Key=self.key, Body=data)
        return len(data)

    def close(self) -> None:
        pass


class S3ObjectReader:
    """Streams one GET of an object."""

    def __init__(self, client, bucket: str, key: str):
        response = client.get_object(Bucket=bucket, Key=key)
        self._body = response["Body"]

    def read(self, size: int) -> bytes:
        return self._body.read(size)

    def close(self) -> None:
        self._body.close()


class S3Connection:
    """One worker's private boto3 session and client."""

    def __init__(self, connector: "S3Connector"):
        self.bucket = connector.bucket
        self._client = connector.create_client()

    def open_for_write(self, name: str) -> S3ObjectWriter:
        return S3ObjectWriter(self._client, self.bucket, name)

    def open_for_read(self, name: str) -> S3ObjectReader:
        return S3ObjectReader(self._client, self.bucket, name)

    def close(self) -> None:
        self._client.close()


class S3Connector:
    """Access to one bucket through one data endpoint."""

    protocol = "s3"
    name_prefix = "objname"

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        settings: Optional[LoadSettings] = None,
    ):
        self.endpoint = endpoint
        self.access_key = access_key
        self.secret_key = secret_key
        self.bucket = bucket
        self.settings = settings or get_load_settings()
        self.write_size = self.settings.s3_write_size
        self.read_size = self.settings.s3_read_size

    @property
    def endpoint_url(self) -> str:
        if "://" in self.endpoint:
            return self.endpoint
        scheme = "https" if self.settings.s3_use_ssl else "http"
        return f"{scheme}://{self.endpoint}"

    def create_client(self):
        """Build a client on its own session; sessions are not shared between threads."""
        session = boto3.session.Session(
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            region_name=self.settings.s3_region,
        )
        return session.client(
            "s3",
            endpoint_url=self.endpoint_url,
            use_ssl=self.settings.s3_use_ssl,
            verify=self.settings.s3_verify_ssl,
            config=Config(
                s3={"addressing_style": "path"},
                max_pool_connections=self.settings.s3_max_pool_connections,
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )

    def verify_reachable(self) -> bool:
        """List the bucket; it is expected to be empty."""
        client = self.create_client()
        count = 0
        try:
            paginator = client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket):
                count += len(page.get("Contents", []))
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to list objects in {self.bucket} at {self.endpoint}: {e}")
            return False
        finally:
            client.close()

        if count != 0:
            logger.warning(f"Expected zero objects in new bucket {self.bucket}, found {count}")
        return True

    def connect(self) -> S3Connection:
        return S3Connection(self)

    def close(self) -> None:
        pass
