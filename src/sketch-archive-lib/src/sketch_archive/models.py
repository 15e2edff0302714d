"""
sketch_archive.models — Value types shared across the packaging pipeline.

Types defined here:
    SketchProperties       — parsed sketch.properties (templates + zip name)
    ZipArchive             — handle to a produced archive, owned by the caller
    AssemblyPhase          — SketchAssembler state vocabulary
    ApplicationCredentials — OAuth client id/secret pair
    EndpointSet            — resolved HTTPS/HTTP/MQTT endpoint URLs
    PublishedArchive       — location of an archive uploaded to S3

No instance outlives a single create-zip call.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

# Placeholder key -> replacement value.  Built fresh per device, never persisted.
SubstitutionContext = Mapping[str, str]

ARCHIVE_SUFFIX = ".zip"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AssemblyPhase(StrEnum):
    INIT = "init"
    CLEANED = "cleaned"
    TEMPLATES_RENDERED = "templates_rendered"
    TREE_COPIED = "tree_copied"
    ARCHIVED = "archived"
    FINALIZED = "finalized"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# sketch.properties
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SketchProperties:
    """Parsed sketch.properties.

    template_file_names: relative paths (within the sketch directory) of the
    files that need placeholder substitution, in declaration order.
    base_archive_name: the ``zipfilename`` property; informational only,
    the archive is named after the device.
    """

    template_file_names: tuple[str, ...]
    base_archive_name: str | None = None


# ---------------------------------------------------------------------------
# Archives
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ZipArchive:
    """Produced archive.  The caller owns the file once this is returned."""

    name: str  # e.g. "living-room-sensor.zip"
    path: Path

    @property
    def size_bytes(self) -> int:
        return self.path.stat().st_size


@dataclass(frozen=True)
class PublishedArchive:
    bucket: str
    key: str
    url: str  # presigned GET URL


# ---------------------------------------------------------------------------
# Endpoint / credential values fed into the substitution context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApplicationCredentials:
    client_id: str
    client_secret: str

    def __repr__(self) -> str:
        return f"ApplicationCredentials(client_id={self.client_id!r}, client_secret='***')"


@dataclass(frozen=True)
class EndpointSet:
    https: str
    http: str
    mqtt: str
