"""
Object storage for attachment content (Amazon S3 or an S3-compatible
endpoint such as MinIO).

The store reports its own capability through is_available(): it is usable
only when a bucket and credentials are configured. The attachment subsystem
asks at the point of use and stores content inline when it is not.
"""
import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from email_backend import config
from email_backend.utils.errors import NotFoundError, UnavailableError, UpstreamError


logger = logging.getLogger(__name__)


# Chunk size used when buffering object bodies (1 MB)
READ_CHUNK_SIZE = 1024 * 1024


class S3ObjectStore:
    """Thin wrapper over a boto3 S3 client."""

    def __init__(
        self,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ):
        self._bucket = bucket
        self._region = region
        self._endpoint_url = endpoint_url
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._client = None

    @property
    def bucket(self) -> str:
        return self._bucket or config.AWS_S3_BUCKET

    def is_available(self) -> bool:
        """True when a bucket and a full credential pair are configured."""
        access_key = self._access_key_id or config.AWS_ACCESS_KEY_ID
        secret_key = self._secret_access_key or config.AWS_SECRET_ACCESS_KEY
        return bool(self.bucket and access_key and secret_key)

    def _get_client(self):
        if not self.is_available():
            raise UnavailableError("Object storage is not configured")
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self._region or config.AWS_REGION,
                endpoint_url=self._endpoint_url or config.S3_ENDPOINT,
                aws_access_key_id=self._access_key_id or config.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=self._secret_access_key or config.AWS_SECRET_ACCESS_KEY,
            )
        return self._client

    def put(self, key: str, content: bytes, content_type: str) -> None:
        """
        Upload an object.

        Raises:
            UnavailableError: If the store is not configured.
            UpstreamError: If the upload fails.
        """
        client = self._get_client()
        try:
            client.put_object(Bucket=self.bucket, Key=key, Body=content, ContentType=content_type)
        except ClientError as e:
            raise UpstreamError(f"Failed to upload {key}: {e}", _client_error_status(e)) from e
        except BotoCoreError as e:
            raise UpstreamError(f"Failed to upload {key}: {e}") from e
        logger.debug(f"Uploaded s3://{self.bucket}/{key} ({len(content)} bytes)")

    def get(self, key: str) -> bytes:
        """
        Download an object, buffering the streamed body in memory.

        Raises:
            NotFoundError: If the object does not exist.
            UpstreamError: If the download fails.
        """
        client = self._get_client()
        try:
            response = client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"]
            return b"".join(body.iter_chunks(chunk_size=READ_CHUNK_SIZE))
        except ClientError as e:
            status = _client_error_status(e)
            if status == 404 or e.response.get("Error", {}).get("Code") == "NoSuchKey":
                raise NotFoundError(f"Attachment object {key} not found") from e
            raise UpstreamError(f"Failed to download {key}: {e}", status) from e
        except BotoCoreError as e:
            raise UpstreamError(f"Failed to download {key}: {e}") from e

    def delete(self, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error in S3."""
        client = self._get_client()
        try:
            client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise UpstreamError(f"Failed to delete {key}: {e}", _client_error_status(e)) from e
        except BotoCoreError as e:
            raise UpstreamError(f"Failed to delete {key}: {e}") from e

    def signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Generate a pre-signed GET URL valid for expires_in seconds."""
        client = self._get_client()
        try:
            return client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise UpstreamError(f"Failed to sign URL for {key}: {e}") from e


def _client_error_status(error: ClientError) -> Optional[int]:
    return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
