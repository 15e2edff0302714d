#!/usr/bin/env python3
"""
build_sketch.py — Build the agent sketch archive for one device.

Renders the device type's sketch under the install root and writes
repository/resources/sketches/archives/{device_id}.zip.  With --bucket the
archive is also uploaded to S3 and a presigned download URL printed.

Endpoint properties come from the environment (see sketch_archive.config);
--ssm-prefix overlays values stored in SSM Parameter Store.

Exit codes:
    0  Archive built (and published when --bucket given)
    1  Packaging, configuration or AWS failure

Usage:
    uv run python scripts/build_sketch.py <device_type> \\
        --device-id <id> --device-name <name> --owner <user> \\
        --tenant-domain <domain> --token <token> --refresh-token <token> \\
        --credentials-file <oauth-app.json> [--install-root <dir>] \\
        [--recursive] [--ssm-prefix /platform/sketches] [--bucket <bucket>]
"""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import replace
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from sketch_archive import AgentSketchService, ArchivePublisher, SketchConfig, SketchError
from sketch_archive.config import load_ssm_properties

logger = logging.getLogger("build_sketch")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def require_aws_region() -> str:
    """Read AWS_REGION from environment and fail fast if missing."""
    region = os.environ.get("AWS_REGION", "").strip()
    if not region:
        raise RuntimeError("AWS_REGION must be set")
    return region


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Build a device agent sketch archive")
    parser.add_argument("device_type", help="Sketch name under repository/resources/sketches")
    parser.add_argument("--device-id", required=True, help="Device identifier")
    parser.add_argument("--device-name", required=True, help="Device name (archive file name)")
    parser.add_argument("--owner", required=True, help="Device owner user name")
    parser.add_argument("--tenant-domain", required=True, help="Tenant domain of the owner")
    parser.add_argument("--token", required=True, help="Device access token")
    parser.add_argument("--refresh-token", required=True, help="Device refresh token")
    parser.add_argument(
        "--credentials-file",
        required=True,
        type=Path,
        help="JSON file holding the OAuth application client_id/client_secret",
    )
    parser.add_argument(
        "--install-root",
        type=Path,
        default=None,
        help="Install root (default SKETCH_INSTALL_ROOT or current directory)",
    )
    parser.add_argument(
        "--recursive",
        action="store_true",
        help="Archive nested directories at any depth instead of two levels",
    )
    parser.add_argument(
        "--ssm-prefix",
        default=None,
        help="SSM path holding endpoint properties, e.g. /platform/sketches",
    )
    parser.add_argument("--bucket", default=None, help="Upload the archive to this S3 bucket")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> SketchConfig:
    config = SketchConfig.from_env()
    if args.install_root is not None:
        config = replace(config, install_root=args.install_root)
    if args.recursive:
        config = replace(config, recursive_archive=True)
    if args.ssm_prefix:
        ssm = boto3.client("ssm", region_name=require_aws_region())
        config = config.with_properties(load_ssm_properties(ssm, args.ssm_prefix))
    return config


def run(args: argparse.Namespace) -> int:
    config = load_config(args)
    credentials_json = args.credentials_file.read_text(encoding="utf-8")

    service = AgentSketchService(config)
    archive = service.create_zip_file(
        owner=args.owner,
        tenant_domain=args.tenant_domain,
        device_type=args.device_type,
        device_id=args.device_id,
        device_name=args.device_name,
        token=args.token,
        refresh_token=args.refresh_token,
        api_application_key=credentials_json,
    )
    logger.info("Built %s (%d bytes)", archive.name, archive.size_bytes)
    print(f"ARCHIVE name={archive.name} path={archive.path}")

    if args.bucket:
        region = require_aws_region()
        publisher = ArchivePublisher(args.bucket, s3_client=boto3.client("s3", region_name=region))
        published = publisher.publish(
            archive,
            tenant_domain=args.tenant_domain,
            device_id=args.device_id,
        )
        print(f"PUBLISHED s3://{published.bucket}/{published.key}")
        print(f"url={published.url}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    args = parse_args(argv)
    try:
        return run(args)
    except (SketchError, OSError, RuntimeError, ClientError, BotoCoreError) as exc:
        logger.error("build_sketch failed: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
