"""
Object storage access for render jobs.

Issues time-bounded GET URLs for objects in the job bucket, uploads
finished videos, and downloads binary payloads over HTTP. No retries
happen here; every failure is raised as ``StorageError`` for the caller
to record.
"""

import logging
from typing import Optional
from urllib.parse import urlsplit

import boto3
import httpx
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from configs.config import get_config
from src.errors import StorageError

logger = logging.getLogger(__name__)

cfg = get_config()

DEFAULT_TTL_SECONDS = cfg.OUTPUT_URL_TTL_SECONDS


def _redact(url: str) -> str:
    """Drop the query string so signatures never reach logs or job records."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


class ObjectAccess:
    """S3-backed presign / upload plus HTTP download."""

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        s3_client=None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Args:
            bucket_name: bucket holding inputs and outputs (defaults to S3_BUCKET)
            s3_client: boto3 S3 client; built from config when omitted
            http_client: httpx client used for downloads; built when omitted
        """
        self.bucket_name = bucket_name or cfg.S3_BUCKET
        if not self.bucket_name:
            raise ValueError("S3 bucket required. Set S3_BUCKET")

        self.s3_client = s3_client or boto3.client(
            "s3",
            region_name=cfg.AWS_REGION,
            endpoint_url=cfg.S3_ENDPOINT_URL,
            config=Config(
                signature_version="s3v4",
                connect_timeout=cfg.S3_CONNECT_TIMEOUT_SECONDS,
                read_timeout=cfg.S3_READ_TIMEOUT_SECONDS,
                retries={"max_attempts": 1},
            ),
        )
        self.http_client = http_client or httpx.Client(
            timeout=httpx.Timeout(cfg.DOWNLOAD_TIMEOUT_SECONDS, connect=10.0),
            follow_redirects=True,
        )

    def presign(self, key: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
        """Return a GET URL for ``key`` valid for ``ttl_seconds``."""
        try:
            url = self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Could not presign {key}: {exc}") from exc
        logger.debug("Presigned %s for %ds", key, ttl_seconds)
        return url

    def download(self, url: str) -> bytes:
        """Fetch the whole body at ``url`` into memory."""
        safe_url = _redact(url)
        logger.info("Downloading %s", safe_url)
        try:
            with self.http_client.stream("GET", url) as response:
                if response.status_code != 200:
                    raise StorageError(
                        f"Download of {safe_url} failed with HTTP "
                        f"{response.status_code}"
                    )
                buffer = bytearray()
                for chunk in response.iter_bytes():
                    buffer.extend(chunk)
        except httpx.HTTPError as exc:
            raise StorageError(f"Download of {safe_url} failed: {exc}") from exc
        logger.info("Downloaded %d bytes from %s", len(buffer), safe_url)
        return bytes(buffer)

    def upload(self, data: bytes, key: str, content_type: str) -> str:
        """Store ``data`` at ``key``, replacing any existing object."""
        logger.info("Uploading %d bytes to %s", len(data), key)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Upload to {key} failed: {exc}") from exc
        logger.info("Upload complete: %s", key)
        return key

    def object_url(self, key: str) -> str:
        """Plain (unsigned) URL of ``key``; only readable if the bucket allows it."""
        if cfg.S3_ENDPOINT_URL:
            return f"{cfg.S3_ENDPOINT_URL.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.{cfg.AWS_REGION}.amazonaws.com/{key}"
