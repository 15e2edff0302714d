"""
sketch_archive.exceptions — Error taxonomy for sketch packaging.

Every failure raised by the library derives from SketchError so callers can
catch one type at the service boundary.  AssemblyError is the single wrapped
failure the assembler surfaces; its cause is the originating SketchError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sketch_archive.models import AssemblyPhase


class SketchError(Exception):
    """Base class for sketch packaging errors."""


class ConfigurationError(SketchError):
    """Raised for missing/malformed sketch properties, config or credential JSON."""


class FilesystemError(SketchError):
    """
    Raised when a create/delete/read/write fails at any stage.

    Attributes:
        path: The filesystem path the failed operation targeted.
    """

    def __init__(self, message: str, *, path: str) -> None:
        self.path = path
        super().__init__(f"{message}: {path}")


class ArchiveError(SketchError):
    """Raised when the working directory cannot be enumerated or the archive written."""


class ResolutionError(SketchError):
    """Raised when the server IP address cannot be resolved."""


class AssemblyError(SketchError):
    """
    Raised when SketchAssembler fails; identifies the phase that failed.

    Attributes:
        phase:     The assembler phase that was being entered when the failure occurred.
        device_id: Device the archive was being assembled for, when known.
    """

    def __init__(
        self,
        *,
        phase: AssemblyPhase,
        reason: str,
        device_id: str | None = None,
    ) -> None:
        self.phase = phase
        self.device_id = device_id
        target = f" for device {device_id!r}" if device_id else ""
        super().__init__(f"Sketch assembly failed in phase {str(phase)!r}{target}: {reason}")
