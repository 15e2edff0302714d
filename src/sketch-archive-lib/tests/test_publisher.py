"""tests/test_publisher.py — S3 delivery of sketch archives (moto)."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws
from sketch_archive.exceptions import ConfigurationError
from sketch_archive.models import ZipArchive
from sketch_archive.publisher import ArchivePublisher, archive_key

REGION = "eu-west-2"
BUCKET = "platform-sketches"


@pytest.fixture(autouse=True)
def aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_REGION", REGION)
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")


@pytest.fixture
def archive(tmp_path: Path) -> ZipArchive:
    path = tmp_path / "device-001.zip"
    path.write_bytes(b"PK\x05\x06" + b"\x00" * 18)
    return ZipArchive(name="living-room.zip", path=path)


def _make_bucket() -> Any:
    s3 = boto3.client("s3", region_name=REGION)
    s3.create_bucket(Bucket=BUCKET, CreateBucketConfiguration={"LocationConstraint": REGION})
    return s3


class TestArchiveKey:
    def test_key_layout(self) -> None:
        key = archive_key("carbon.super", "d-1", "x.zip")
        assert key == "tenants/carbon.super/sketches/d-1/x.zip"

    @pytest.mark.parametrize(
        ("tenant", "device"), [("", "d-1"), ("a/b", "d-1"), ("t", ""), ("t", "../d")]
    )
    def test_rejects_bad_segments(self, tenant: str, device: str) -> None:
        with pytest.raises(ConfigurationError):
            archive_key(tenant, device, "x.zip")


@mock_aws
def test_publish_uploads_and_returns_presigned_url(archive: ZipArchive) -> None:
    s3 = _make_bucket()
    publisher = ArchivePublisher(BUCKET, s3_client=s3)

    published = publisher.publish(archive, tenant_domain="carbon.super", device_id="device-001")

    assert published.bucket == BUCKET
    assert published.key == "tenants/carbon.super/sketches/device-001/living-room.zip"
    assert published.url.startswith("https://")
    assert "living-room.zip" in published.url

    obj = s3.get_object(Bucket=BUCKET, Key=published.key)
    assert obj["Body"].read() == archive.path.read_bytes()
    assert obj["ContentType"] == "application/zip"


@mock_aws
def test_publish_default_client_uses_env_region(archive: ZipArchive) -> None:
    _make_bucket()
    published = ArchivePublisher(BUCKET).publish(archive, tenant_domain="t", device_id="d")
    assert published.key == "tenants/t/sketches/d/living-room.zip"


@mock_aws
def test_publish_missing_bucket_raises_client_error(archive: ZipArchive) -> None:
    s3 = boto3.client("s3", region_name=REGION)
    publisher = ArchivePublisher("does-not-exist", s3_client=s3)
    with pytest.raises(ClientError):
        publisher.publish(archive, tenant_domain="t", device_id="d")


def test_publish_passes_expiry(archive: ZipArchive) -> None:
    s3 = MagicMock()
    s3.generate_presigned_url.return_value = "https://signed"
    publisher = ArchivePublisher(BUCKET, s3_client=s3, url_expiry_seconds=60)

    published = publisher.publish(archive, tenant_domain="t", device_id="d")

    assert published.url == "https://signed"
    kwargs = s3.generate_presigned_url.call_args.kwargs
    assert kwargs["ExpiresIn"] == 60
    assert kwargs["Params"] == {"Bucket": BUCKET, "Key": "tenants/t/sketches/d/living-room.zip"}
