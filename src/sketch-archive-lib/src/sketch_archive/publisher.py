"""
sketch_archive.publisher — Upload produced archives to S3 for download.

Objects are written under the owning tenant's prefix:

    tenants/{tenant_domain}/sketches/{device_id}/{archive name}

and handed back as a presigned GET URL.  The local archive is left in place;
deleting it remains the caller's decision.
"""

from __future__ import annotations

import os
from typing import Any

import boto3
from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

from sketch_archive.exceptions import ConfigurationError
from sketch_archive.models import PublishedArchive, ZipArchive

logger = Logger(service="sketch-archive")

_S3_TENANT_DIR = "tenants/"
_ZIP_CONTENT_TYPE = "application/zip"
DEFAULT_URL_EXPIRY_SECONDS = 3600


def archive_key(tenant_domain: str, device_id: str, archive_name: str) -> str:
    for label, value in (("tenant_domain", tenant_domain), ("device_id", device_id)):
        if not value or "/" in value:
            raise ConfigurationError(f"{label} must be a non-empty key segment, got {value!r}")
    return f"{_S3_TENANT_DIR}{tenant_domain}/sketches/{device_id}/{archive_name}"


class ArchivePublisher:
    """
    Publishes sketch archives to a single S3 bucket.

    The S3 client is injectable for tests; by default one is created for
    AWS_REGION.
    """

    def __init__(
        self,
        bucket: str,
        *,
        s3_client: Any = None,
        url_expiry_seconds: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> None:
        self._bucket = bucket
        self._url_expiry_seconds = url_expiry_seconds
        self._s3: Any = s3_client or boto3.client("s3", region_name=os.environ["AWS_REGION"])

    def publish(
        self,
        archive: ZipArchive,
        *,
        tenant_domain: str,
        device_id: str,
    ) -> PublishedArchive:
        """Upload archive and return its bucket, key and presigned URL."""
        key = archive_key(tenant_domain, device_id, archive.name)
        try:
            with archive.path.open("rb") as body:
                self._s3.put_object(
                    Bucket=self._bucket,
                    Key=key,
                    Body=body,
                    ContentType=_ZIP_CONTENT_TYPE,
                    ContentDisposition=f'attachment; filename="{archive.name}"',
                )
            url = self._s3.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=self._url_expiry_seconds,
            )
        except ClientError:
            logger.exception(
                "Failed to publish sketch archive",
                bucket=self._bucket,
                key=key,
                device_id=device_id,
            )
            raise

        logger.info("Published sketch archive", bucket=self._bucket, key=key, device_id=device_id)
        return PublishedArchive(bucket=self._bucket, key=key, url=url)
