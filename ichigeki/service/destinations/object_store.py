"""
S3 object store client.

Wraps the two calls the remote destination needs:

- head_object    metadata-only existence probe
- upload_fileobj streaming upload from a file-like body; bodies above the
                 multipart threshold go up part by part, so only a few
                 parts are held in memory at once

Credentials and region come from the AWS default chain (environment,
shared config, instance role). ``AWS_DEFAULT_REGION`` selects the region.

Environment Variables:
  ICHIGEKI_S3_ENDPOINT - endpoint URL of an S3-compatible store
                         (default: AWS S3)
"""

import logging
import os
from typing import Any, BinaryIO, Dict, Optional

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

CONTENT_TYPE = "text/plain; charset=utf-8"
NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")

# At most two 8 MiB parts are buffered by the uploader at a time.
TRANSFER_CONFIG = TransferConfig(
    multipart_threshold=8 * 1024 * 1024,
    multipart_chunksize=8 * 1024 * 1024,
    max_concurrency=2,
)


class ObjectNotFound(Exception):
    """Raised by head_object when the key does not exist."""

    pass


class ObjectStoreError(Exception):
    """Raised when the object store answers with an unexpected status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"object store returned {status_code}: {message}")


class S3ObjectStore:
    def __init__(
        self,
        client: Any = None,
        endpoint_url: Optional[str] = None,
        region_name: Optional[str] = None,
    ):
        self.endpoint_url = endpoint_url or None
        self.region_name = region_name or None
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_env(cls, endpoint_url: Optional[str] = None) -> "S3ObjectStore":
        return cls(
            endpoint_url=endpoint_url or os.getenv("ICHIGEKI_S3_ENDPOINT"),
            region_name=os.getenv("AWS_DEFAULT_REGION"),
        )

    @property
    def client(self) -> Any:
        """The boto3 S3 client, created on first use."""
        if self._client is None:
            self._client = boto3.client(
                "s3", endpoint_url=self.endpoint_url, region_name=self.region_name
            )
        return self._client

    def head_object(self, bucket: str, key: str) -> Dict[str, Any]:
        """Return object metadata; raise ObjectNotFound when the key is absent."""
        try:
            return self.client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            error = e.response.get("Error", {})
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
            if error.get("Code") in NOT_FOUND_CODES or status == 404:
                raise ObjectNotFound(key) from e
            raise ObjectStoreError(status, error.get("Message") or str(e)) from e

    def put_object(self, bucket: str, key: str, body: BinaryIO) -> None:
        """Upload everything ``body.read()`` yields until end-of-stream."""
        self.client.upload_fileobj(
            Fileobj=body,
            Bucket=bucket,
            Key=key,
            ExtraArgs={"ContentType": CONTENT_TYPE},
            Config=TRANSFER_CONFIG,
        )
        logger.debug(f"uploaded s3://{bucket}/{key}")

    def close(self) -> None:
        """Release the client's connection pool if this store created it."""
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None
