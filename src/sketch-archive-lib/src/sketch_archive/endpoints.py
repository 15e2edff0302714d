"""
sketch_archive.endpoints — Substitution values for server endpoints and credentials.

    resolve_server_ip()       first non-loopback IPv4 address; raises ResolutionError
    server_address()          resolve_server_ip() with a caller-chosen fallback
    expand_properties()       ${name} expansion against SketchConfig.properties
    EndpointResolver          HTTPS/HTTP/MQTT endpoint URLs for a device
    encode_application_key()  base64("client_id:client_secret") from OAuth JSON
"""

from __future__ import annotations

import base64
import json
import re
import socket
from collections.abc import Callable, Mapping

from aws_lambda_powertools import Logger

from sketch_archive.config import SketchConfig
from sketch_archive.exceptions import ConfigurationError, ResolutionError
from sketch_archive.models import ApplicationCredentials, EndpointSet

logger = Logger(service="sketch-archive")

LOCALHOST = "localhost"
OAUTH_CLIENT_ID = "client_id"
OAUTH_CLIENT_SECRET = "client_secret"

_PROPERTY_REF = re.compile(r"\$\{([^}]+)\}")


# ---------------------------------------------------------------------------
# Server address
# ---------------------------------------------------------------------------


def resolve_server_ip() -> str:
    """Return the first non-loopback IPv4 address bound to this host's name."""
    try:
        hostname = socket.gethostname()
        infos = socket.getaddrinfo(hostname, None, family=socket.AF_INET)
    except OSError as exc:
        raise ResolutionError(f"Could not resolve server IP address: {exc}") from exc

    for *_, sockaddr in infos:
        address = str(sockaddr[0])
        if not address.startswith("127."):
            return address
    raise ResolutionError(f"No non-loopback IPv4 address found for host {hostname!r}")


def server_address(
    fallback: str = LOCALHOST,
    resolver: Callable[[], str] = resolve_server_ip,
) -> str:
    """Resolve the server IP, returning fallback if resolution fails."""
    try:
        return resolver()
    except ResolutionError as exc:
        logger.warning(
            "Server IP resolution failed, using fallback",
            fallback=fallback,
            error=str(exc),
        )
        return fallback


# ---------------------------------------------------------------------------
# Endpoint URLs
# ---------------------------------------------------------------------------


def expand_properties(template: str, properties: Mapping[str, str]) -> str:
    """Expand ${name} references.  An undefined name raises ConfigurationError."""

    def _lookup(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in properties:
            raise ConfigurationError(
                f"Undefined property {name!r} in endpoint template {template!r}"
            )
        return properties[name]

    return _PROPERTY_REF.sub(_lookup, template)


class EndpointResolver:
    """Computes the endpoint URLs written into a device's sketch."""

    def __init__(
        self,
        config: SketchConfig,
        *,
        ip_resolver: Callable[[], str] = server_address,
    ) -> None:
        self._config = config
        self._ip_resolver = ip_resolver

    def resolve(self) -> EndpointSet:
        props = self._config.properties
        https = expand_properties(self._config.https_url_template, props)
        http = expand_properties(self._config.http_url_template, props)
        mqtt = expand_properties(self._config.mqtt_url_template, props)
        # Only a loopback broker triggers the rewrite, and then all three URLs follow it.
        if LOCALHOST in mqtt:
            ip = self._ip_resolver()
            mqtt = mqtt.replace(LOCALHOST, ip)
            https = https.replace(LOCALHOST, ip)
            http = http.replace(LOCALHOST, ip)
        return EndpointSet(https=https, http=http, mqtt=mqtt)


# ---------------------------------------------------------------------------
# Application credentials
# ---------------------------------------------------------------------------


def parse_application_credentials(credentials_json: str) -> ApplicationCredentials:
    """Parse the OAuth application JSON ({"client_id": ..., "client_secret": ...})."""
    try:
        payload = json.loads(credentials_json)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Application credentials are not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError("Application credentials must be a JSON object")

    missing = [key for key in (OAUTH_CLIENT_ID, OAUTH_CLIENT_SECRET) if payload.get(key) is None]
    if missing:
        raise ConfigurationError(f"Application credentials missing field(s): {', '.join(missing)}")
    return ApplicationCredentials(
        client_id=str(payload[OAUTH_CLIENT_ID]),
        client_secret=str(payload[OAUTH_CLIENT_SECRET]),
    )


def encode_application_key(credentials_json: str) -> str:
    """Return base64("client_id:client_secret") for the API_APPLICATION_KEY placeholder."""
    creds = parse_application_credentials(credentials_json)
    raw = f"{creds.client_id}:{creds.client_secret}".encode()
    return base64.b64encode(raw).decode("ascii").strip()
