"""
sketch_archive — Per-device agent sketch packaging.

Copies a device type's template sketch, substitutes {KEY} placeholders in the
files listed by its sketch.properties, and zips the result for delivery to the
device agent.
"""

from sketch_archive.archive import ArchiveBuilder
from sketch_archive.assembler import SketchAssembler
from sketch_archive.config import SketchConfig
from sketch_archive.exceptions import (
    ArchiveError,
    AssemblyError,
    ConfigurationError,
    FilesystemError,
    ResolutionError,
    SketchError,
)
from sketch_archive.models import AssemblyPhase, SketchProperties, ZipArchive
from sketch_archive.publisher import ArchivePublisher
from sketch_archive.service import AgentSketchService

__all__ = [
    "AgentSketchService",
    "ArchiveBuilder",
    "ArchiveError",
    "ArchivePublisher",
    "AssemblyError",
    "AssemblyPhase",
    "ConfigurationError",
    "FilesystemError",
    "ResolutionError",
    "SketchAssembler",
    "SketchConfig",
    "SketchError",
    "SketchProperties",
    "ZipArchive",
]
