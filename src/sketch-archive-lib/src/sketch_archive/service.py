"""
sketch_archive.service — Per-device agent sketch creation.

AgentSketchService.create_zip_file() is the entry point the device-management
platform calls on device registration.  It lays out paths under the install
root, builds the substitution context and runs the SketchAssembler:

    {install_root}/repository/resources/sketches/{device_type}         template
    {install_root}/repository/resources/sketches/archives/{device_id}  staging
    {install_root}/repository/resources/sketches/archives/{device_id}.zip

Placeholders available to sketch templates:
    SERVER_NAME, DEVICE_OWNER, DEVICE_ID, DEVICE_NAME, HTTPS_EP, HTTP_EP,
    APIM_EP, MQTT_EP, DEVICE_TOKEN, DEVICE_REFRESH_TOKEN, API_APPLICATION_KEY
"""

from __future__ import annotations

from collections.abc import Callable

from aws_lambda_powertools import Logger

from sketch_archive.archive import ArchiveBuilder
from sketch_archive.assembler import SketchAssembler
from sketch_archive.config import SketchConfig
from sketch_archive.endpoints import EndpointResolver, encode_application_key, server_address
from sketch_archive.exceptions import ConfigurationError
from sketch_archive.models import ZipArchive

logger = Logger(service="sketch-archive")


def _require_segment(value: str, field_name: str) -> str:
    """Reject values that would escape the sketches directory when joined as a path."""
    if not value or value in {".", ".."} or "/" in value or "\\" in value or "\x00" in value:
        raise ConfigurationError(f"{field_name} must be a single path segment, got {value!r}")
    return value


class AgentSketchService:
    """Creates the agent configuration archive for a registered device."""

    def __init__(
        self,
        config: SketchConfig,
        *,
        ip_resolver: Callable[[], str] = server_address,
        tenant_domain_lookup: Callable[[str], str] | None = None,
    ) -> None:
        self._config = config
        self._endpoints = EndpointResolver(config, ip_resolver=ip_resolver)
        self._tenant_domain_lookup = tenant_domain_lookup
        self._assembler = SketchAssembler(
            archive_builder=ArchiveBuilder(recursive=config.recursive_archive)
        )

    def build_context(
        self,
        *,
        owner: str,
        tenant_domain: str,
        device_id: str,
        device_name: str,
        token: str,
        refresh_token: str,
        api_application_key: str,
    ) -> dict[str, str]:
        """Return the substitution context for one device.

        Raises ConfigurationError if the endpoint templates or the application
        credentials JSON cannot be resolved.
        """
        endpoints = self._endpoints.resolve()
        server_name = (
            self._tenant_domain_lookup(tenant_domain)
            if self._tenant_domain_lookup is not None
            else tenant_domain
        )
        return {
            "SERVER_NAME": server_name,
            "DEVICE_OWNER": owner,
            "DEVICE_ID": device_id,
            "DEVICE_NAME": device_name,
            "HTTPS_EP": endpoints.https,
            "HTTP_EP": endpoints.http,
            "APIM_EP": endpoints.https,
            "MQTT_EP": endpoints.mqtt,
            "DEVICE_TOKEN": token,
            "DEVICE_REFRESH_TOKEN": refresh_token,
            "API_APPLICATION_KEY": encode_application_key(api_application_key),
        }

    def create_zip_file(
        self,
        owner: str,
        tenant_domain: str,
        device_type: str,
        device_id: str,
        device_name: str,
        token: str,
        refresh_token: str,
        api_application_key: str,
    ) -> ZipArchive:
        """Create the agent sketch archive for a device.

        Returns a ZipArchive named "{device_name}.zip".

        Raises:
            ConfigurationError: invalid device type/id, endpoint template or
                                application credentials.
            AssemblyError:      the archive could not be assembled.
        """
        _require_segment(device_type, "device_type")
        _require_segment(device_id, "device_id")

        context = self.build_context(
            owner=owner,
            tenant_domain=tenant_domain,
            device_id=device_id,
            device_name=device_name,
            token=token,
            refresh_token=refresh_token,
            api_application_key=api_application_key,
        )
        logger.info(
            "Creating agent sketch archive",
            device_type=device_type,
            device_id=device_id,
            tenant_domain=tenant_domain,
        )
        return self._assembler.assemble(
            self._config.working_dir(device_id),
            self._config.sketch_dir(device_type),
            context,
            device_name,
            device_id=device_id,
        )
