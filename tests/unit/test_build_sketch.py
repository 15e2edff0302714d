"""Unit tests for scripts/build_sketch.py."""

from __future__ import annotations

import importlib.util
import io
import json
import sys
import zipfile
from contextlib import redirect_stdout
from pathlib import Path
from typing import Any

import boto3
import pytest
from moto import mock_aws


def _load_module() -> Any:
    repo_root = Path(__file__).resolve().parents[2]
    spec = importlib.util.spec_from_file_location(
        "build_sketch_script", repo_root / "scripts" / "build_sketch.py"
    )
    assert spec and spec.loader
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)  # type: ignore[union-attr]
    return module


build_sketch = _load_module()
_REGION = "eu-west-2"
_BUCKET = "platform-sketches"


@pytest.fixture(autouse=True)
def sketch_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_REGION", _REGION)
    monkeypatch.setenv("AWS_DEFAULT_REGION", _REGION)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    # Remote broker keeps endpoint values independent of the test host's IP.
    monkeypatch.setenv("MQTT_BROKER_HOST", "broker.example.com")
    monkeypatch.setenv("IOT_GATEWAY_HOST", "gw.example.com")
    monkeypatch.delenv("SKETCH_INSTALL_ROOT", raising=False)
    monkeypatch.delenv("SKETCH_ARCHIVE_RECURSIVE", raising=False)


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    sketch = tmp_path / "repository" / "resources" / "sketches" / "raspberrypi"
    (sketch / "lib" / "pkg").mkdir(parents=True)
    (sketch / "sketch.properties").write_text("templates=agent.cfg\n", encoding="utf-8")
    (sketch / "agent.cfg").write_text("mqtt={MQTT_EP}\nid={DEVICE_ID}\n", encoding="utf-8")
    (sketch / "lib" / "pkg" / "mod.py").write_text("x = 1\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def credentials_file(tmp_path: Path) -> Path:
    path = tmp_path / "oauth-app.json"
    path.write_text(json.dumps({"client_id": "cid", "client_secret": "csecret"}), encoding="utf-8")
    return path


def _argv(install_root: Path, credentials_file: Path, *extra: str) -> list[str]:
    return [
        "raspberrypi",
        "--device-id",
        "device-001",
        "--device-name",
        "living-room",
        "--owner",
        "admin",
        "--tenant-domain",
        "carbon.super",
        "--token",
        "tok",
        "--refresh-token",
        "rtok",
        "--credentials-file",
        str(credentials_file),
        "--install-root",
        str(install_root),
        *extra,
    ]


def _archive_path(install_root: Path) -> Path:
    return install_root / "repository" / "resources" / "sketches" / "archives" / "device-001.zip"


# ---------------------------------------------------------------------------
# parse_args
# ---------------------------------------------------------------------------


def test_parse_args(install_root: Path, credentials_file: Path) -> None:
    args = build_sketch.parse_args(_argv(install_root, credentials_file, "--recursive"))
    assert args.device_type == "raspberrypi"
    assert args.device_id == "device-001"
    assert args.credentials_file == credentials_file
    assert args.recursive is True
    assert args.bucket is None


def test_parse_args_requires_device_id() -> None:
    with pytest.raises(SystemExit):
        build_sketch.parse_args(["raspberrypi", "--device-name", "x"])


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


def test_main_builds_archive(install_root: Path, credentials_file: Path) -> None:
    stdout = io.StringIO()
    with redirect_stdout(stdout):
        exit_code = build_sketch.main(_argv(install_root, credentials_file))

    assert exit_code == 0
    archive = _archive_path(install_root)
    assert f"path={archive}" in stdout.getvalue()
    with zipfile.ZipFile(archive) as zf:
        assert zf.read("agent.cfg") == b"mqtt=tcp://broker.example.com:1886\nid=device-001\n"
        assert "lib/pkg/mod.py" not in zf.namelist()


def test_main_recursive_flag(install_root: Path, credentials_file: Path) -> None:
    with redirect_stdout(io.StringIO()):
        exit_code = build_sketch.main(_argv(install_root, credentials_file, "--recursive"))
    assert exit_code == 0
    with zipfile.ZipFile(_archive_path(install_root)) as zf:
        assert "lib/pkg/mod.py" in zf.namelist()


def test_main_returns_1_for_unknown_device_type(install_root: Path, credentials_file: Path) -> None:
    argv = _argv(install_root, credentials_file)
    argv[0] = "arduino"
    assert build_sketch.main(argv) == 1


def test_main_returns_1_for_missing_credentials_file(install_root: Path, tmp_path: Path) -> None:
    assert build_sketch.main(_argv(install_root, tmp_path / "missing.json")) == 1


def test_main_returns_1_for_bad_credentials(install_root: Path, tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text('{"client_id": "only"}', encoding="utf-8")
    assert build_sketch.main(_argv(install_root, bad)) == 1


@mock_aws
def test_main_publishes_to_bucket(install_root: Path, credentials_file: Path) -> None:
    s3 = boto3.client("s3", region_name=_REGION)
    s3.create_bucket(Bucket=_BUCKET, CreateBucketConfiguration={"LocationConstraint": _REGION})

    stdout = io.StringIO()
    with redirect_stdout(stdout):
        exit_code = build_sketch.main(_argv(install_root, credentials_file, "--bucket", _BUCKET))

    assert exit_code == 0
    key = "tenants/carbon.super/sketches/device-001/living-room.zip"
    assert f"PUBLISHED s3://{_BUCKET}/{key}" in stdout.getvalue()
    body = s3.get_object(Bucket=_BUCKET, Key=key)["Body"].read()
    assert body == _archive_path(install_root).read_bytes()


@mock_aws
def test_main_overlays_ssm_properties(install_root: Path, credentials_file: Path) -> None:
    ssm = boto3.client("ssm", region_name=_REGION)
    ssm.put_parameter(Name="/platform/sketches/mqtt.broker.port", Value="8883", Type="String")

    with redirect_stdout(io.StringIO()):
        exit_code = build_sketch.main(
            _argv(install_root, credentials_file, "--ssm-prefix", "/platform/sketches")
        )

    assert exit_code == 0
    with zipfile.ZipFile(_archive_path(install_root)) as zf:
        assert b"mqtt=tcp://broker.example.com:8883" in zf.read("agent.cfg")


def test_main_returns_1_when_region_missing_for_bucket(
    monkeypatch: pytest.MonkeyPatch, install_root: Path, credentials_file: Path
) -> None:
    monkeypatch.delenv("AWS_REGION", raising=False)
    with redirect_stdout(io.StringIO()):
        exit_code = build_sketch.main(_argv(install_root, credentials_file, "--bucket", _BUCKET))
    assert exit_code == 1
