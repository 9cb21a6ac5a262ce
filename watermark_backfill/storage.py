"""
S3 upload helpers for transformed images.

Objects are written public-read with an attachment disposition, so the URL
handed back can be stored on the record and resolved directly by clients.
"""

from __future__ import annotations

from io import BytesIO
import logging

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from .config import Settings
from .errors import RemoteStatusError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Multi-picture camera JPEGs are still served as plain JPEG.
MIME_OVERRIDES = {"MPO": "image/jpeg"}


def detect_content_type(content: bytes) -> str:
    """Sniff the image format from the leading bytes; unknown data is octet-stream."""
    if not content:
        return DEFAULT_CONTENT_TYPE
    try:
        with Image.open(BytesIO(content)) as image:
            fmt = image.format
    except (UnidentifiedImageError, OSError):
        return DEFAULT_CONTENT_TYPE
    if fmt in MIME_OVERRIDES:
        return MIME_OVERRIDES[fmt]
    return Image.MIME.get(fmt or "", DEFAULT_CONTENT_TYPE)


def build_public_url(bucket: str, region: str, key: str) -> str:
    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"


def make_s3_client(settings: Settings):
    session = boto3.session.Session()
    return session.client(
        service_name="s3",
        region_name=settings.s3_region,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        endpoint_url=settings.s3_endpoint,
        config=BotoConfig(signature_version="s3v4", max_pool_connections=settings.worker_count),
    )


class ArtifactStore:
    """Thin wrapper around `put_object` that returns the public object URL."""

    def __init__(self, client, region: str) -> None:
        self._client = client
        self.region = region

    @classmethod
    def from_settings(cls, settings: Settings) -> "ArtifactStore":
        return cls(make_s3_client(settings), settings.s3_region)

    def store(self, bucket: str, key: str, content: bytes) -> str:
        """
        Upload `content` under `bucket/key` and return its public URL.

        Raises:
            ValueError: when bucket or key is empty.
            RemoteStatusError: when S3 rejects the write.
            TransportError: when S3 cannot be reached.
        """
        if not bucket or not key:
            raise ValueError("bucket and key must be non-empty")

        try:
            self._client.put_object(
                Bucket=bucket,
                Key=key,
                ACL="public-read",
                Body=content,
                ContentLength=len(content),
                ContentType=detect_content_type(content),
                ContentDisposition="attachment",
            )
        except ClientError as exc:
            meta = exc.response.get("ResponseMetadata", {})
            error = exc.response.get("Error", {})
            raise RemoteStatusError(
                f"S3 rejected upload of {key}: {error.get('Code')} {error.get('Message')}",
                status_code=meta.get("HTTPStatusCode"),
                body=str(error.get("Message") or ""),
            ) from exc
        except BotoCoreError as exc:
            raise TransportError(f"S3 upload of {key} failed: {exc}") from exc

        return build_public_url(bucket, self.region, key)
