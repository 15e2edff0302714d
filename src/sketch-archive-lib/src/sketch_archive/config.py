"""
sketch_archive.config — Explicitly passed packaging configuration.

SketchConfig carries the install root, the property values used to expand
endpoint URL templates, and the archive traversal flag.  Build it with
SketchConfig.from_env() (Lambda/CLI) and optionally overlay values stored in
SSM with load_ssm_properties().

Environment variables:
    SKETCH_INSTALL_ROOT       directory containing repository/resources/sketches
    IOT_GATEWAY_HOST          default "localhost"
    IOT_GATEWAY_HTTPS_PORT    default "8243"
    IOT_GATEWAY_HTTP_PORT     default "8280"
    MQTT_BROKER_HOST          default "localhost"
    MQTT_BROKER_PORT          default "1886"
    SKETCH_ARCHIVE_RECURSIVE  "true" to archive nested directories at any depth
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from aws_lambda_powertools import Logger

logger = Logger(service="sketch-archive")

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_HTTPS_URL_TEMPLATE = "https://${iot.gateway.host}:${iot.gateway.https.port}"
DEFAULT_HTTP_URL_TEMPLATE = "http://${iot.gateway.host}:${iot.gateway.http.port}"
DEFAULT_MQTT_URL_TEMPLATE = "tcp://${mqtt.broker.host}:${mqtt.broker.port}"

SKETCHES_DIR = Path("repository") / "resources" / "sketches"
ARCHIVES_DIR_NAME = "archives"

# env var -> (property name, default)
_ENV_PROPERTIES: dict[str, tuple[str, str]] = {
    "IOT_GATEWAY_HOST": ("iot.gateway.host", "localhost"),
    "IOT_GATEWAY_HTTPS_PORT": ("iot.gateway.https.port", "8243"),
    "IOT_GATEWAY_HTTP_PORT": ("iot.gateway.http.port", "8280"),
    "MQTT_BROKER_HOST": ("mqtt.broker.host", "localhost"),
    "MQTT_BROKER_PORT": ("mqtt.broker.port", "1886"),
}
_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SketchConfig:
    install_root: Path
    properties: Mapping[str, str] = field(default_factory=dict)
    https_url_template: str = DEFAULT_HTTPS_URL_TEMPLATE
    http_url_template: str = DEFAULT_HTTP_URL_TEMPLATE
    mqtt_url_template: str = DEFAULT_MQTT_URL_TEMPLATE
    recursive_archive: bool = False

    @property
    def sketches_root(self) -> Path:
        return self.install_root / SKETCHES_DIR

    @property
    def archives_root(self) -> Path:
        return self.sketches_root / ARCHIVES_DIR_NAME

    def sketch_dir(self, device_type: str) -> Path:
        return self.sketches_root / device_type

    def working_dir(self, device_id: str) -> Path:
        return self.archives_root / device_id

    def with_properties(self, overrides: Mapping[str, str]) -> SketchConfig:
        """Return a copy with overrides layered over the current properties."""
        return replace(self, properties={**self.properties, **overrides})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SketchConfig:
        env = os.environ if environ is None else environ
        install_root = env.get("SKETCH_INSTALL_ROOT", "").strip()
        properties = {
            name: env.get(var, "").strip() or default
            for var, (name, default) in _ENV_PROPERTIES.items()
        }
        return cls(
            install_root=Path(install_root) if install_root else Path.cwd(),
            properties=properties,
            recursive_archive=env.get("SKETCH_ARCHIVE_RECURSIVE", "").strip().lower() in _TRUTHY,
        )


def load_ssm_properties(ssm_client: Any, prefix: str) -> dict[str, str]:
    """Read endpoint properties stored under an SSM path.

    /platform/sketches/iot.gateway.host -> {"iot.gateway.host": value}.
    ClientError propagates; the caller decides whether env defaults suffice.
    """
    path = prefix.rstrip("/") + "/"
    properties: dict[str, str] = {}
    paginator = ssm_client.get_paginator("get_parameters_by_path")
    for page in paginator.paginate(Path=path, WithDecryption=True):
        for param in page.get("Parameters", []):
            name = str(param.get("Name", ""))
            value = param.get("Value")
            if name.startswith(path) and value is not None:
                properties[name.removeprefix(path)] = str(value)
    logger.info("Loaded sketch properties from SSM", prefix=path, count=len(properties))
    return properties
