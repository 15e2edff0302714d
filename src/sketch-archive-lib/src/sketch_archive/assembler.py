"""
sketch_archive.assembler — Sketch archive assembly pipeline.

Phases (AssemblyPhase):

    INIT -> CLEANED -> TEMPLATES_RENDERED -> TREE_COPIED -> ARCHIVED -> FINALIZED
                      any failure -> FAILED

    CLEANED             stale working directory and archive removed, fresh
                        empty working directory created
    TEMPLATES_RENDERED  every file listed in sketch.properties rendered into
                        the working directory at the same relative path
                        (a template the archive layout would drop fails here)
    TREE_COPIED         remaining sketch files copied (templates and
                        sketch.properties excluded by base name)
    ARCHIVED            "{working_dir}.zip" written
    FINALIZED           working directory removed, ZipArchive returned

A failure raises AssemblyError naming the phase that could not be reached,
chained to the originating SketchError.  Nothing is retried.  The working
directory is removed on every exit path; removal failures are logged only.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from pathlib import Path, PurePosixPath
from typing import TypeVar

from aws_lambda_powertools import Logger

from sketch_archive.archive import PARTIAL_SUFFIX, ArchiveBuilder, archive_path_for
from sketch_archive.copier import copy_tree
from sketch_archive.exceptions import (
    AssemblyError,
    ConfigurationError,
    FilesystemError,
    SketchError,
)
from sketch_archive.models import (
    ARCHIVE_SUFFIX,
    AssemblyPhase,
    SketchProperties,
    SubstitutionContext,
    ZipArchive,
)
from sketch_archive.properties import SKETCH_PROPERTIES_FILE, read_sketch_properties
from sketch_archive.renderer import render_template

logger = Logger(service="sketch-archive")

_T = TypeVar("_T")


def _template_relative_path(name: str) -> Path:
    """Validate a templates entry; it must stay inside the sketch directory."""
    candidate = PurePosixPath(name)
    if not name or "\0" in name or candidate.is_absolute() or ".." in candidate.parts:
        raise ConfigurationError(
            f"Invalid template file name in {SKETCH_PROPERTIES_FILE}: {name!r}"
        )
    return Path(*candidate.parts)


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


class SketchAssembler:
    """Turns a sketch directory plus a substitution context into a zip archive.

    One assembler instance may be reused sequentially; ``phase`` reports the
    state reached by the most recent assemble() call.
    """

    def __init__(self, *, archive_builder: ArchiveBuilder | None = None) -> None:
        self._archive_builder = archive_builder or ArchiveBuilder()
        self.phase = AssemblyPhase.INIT

    # ------------------------------------------------------------------
    # Phase steps
    # ------------------------------------------------------------------

    def _clean(self, working_dir: Path) -> None:
        archive = archive_path_for(working_dir)
        for stale in (working_dir, archive, archive.with_name(archive.name + PARTIAL_SUFFIX)):
            try:
                _remove_path(stale)
            except OSError as exc:
                raise FilesystemError("Could not remove stale path", path=str(stale)) from exc
        try:
            working_dir.mkdir(parents=True)
        except OSError as exc:
            raise FilesystemError("Could not create directory", path=str(working_dir)) from exc

    def _render_templates(
        self,
        sketch_dir: Path,
        working_dir: Path,
        context: SubstitutionContext,
    ) -> SketchProperties:
        properties = read_sketch_properties(sketch_dir / SKETCH_PROPERTIES_FILE)
        for name in properties.template_file_names:
            relative = _template_relative_path(name)
            if not self._archive_builder.includes_depth(len(relative.parts)):
                raise ConfigurationError(
                    f"Template {name!r} is nested deeper than the archive includes"
                )
            render_template(sketch_dir / relative, working_dir / relative, context)
        return properties

    def _copy_remaining(
        self,
        sketch_dir: Path,
        working_dir: Path,
        properties: SketchProperties,
    ) -> None:
        excluded = {PurePosixPath(name).name for name in properties.template_file_names}
        excluded.add(SKETCH_PROPERTIES_FILE)
        copy_tree(sketch_dir, working_dir, excluded)

    def _advance(
        self,
        target: AssemblyPhase,
        step: Callable[[], _T],
        *,
        device_id: str | None,
    ) -> _T:
        try:
            result = step()
        except SketchError as exc:
            self.phase = AssemblyPhase.FAILED
            logger.error(
                "Sketch assembly phase failed",
                phase=str(target),
                device_id=device_id,
                error=str(exc),
            )
            raise AssemblyError(phase=target, reason=str(exc), device_id=device_id) from exc
        self.phase = target
        logger.debug("Sketch assembly phase reached", phase=str(target), device_id=device_id)
        return result

    def _discard_working_dir(self, working_dir: Path) -> None:
        try:
            _remove_path(working_dir)
        except OSError as exc:
            logger.warning(
                "Could not remove working directory",
                path=str(working_dir),
                error=str(exc),
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def assemble(
        self,
        working_dir: Path,
        sketch_dir: Path,
        context: SubstitutionContext,
        archive_name: str,
        *,
        device_id: str | None = None,
    ) -> ZipArchive:
        """Assemble "{working_dir}.zip" from sketch_dir.

        Args:
            working_dir:  Transient staging directory; the archive is written
                          next to it as "{working_dir}.zip".
            sketch_dir:   Template sketch containing sketch.properties.
            context:      Placeholder key -> value used to render templates.
            archive_name: Name reported on the returned ZipArchive (".zip" appended).
            device_id:    Included in logs and in AssemblyError when given.

        With the legacy two-level ArchiveBuilder, non-template files nested
        deeper than "{subdir}/{file}" are left out of the archive (a warning
        is logged); templates that deep fail assembly instead.

        Raises:
            AssemblyError: a phase failed; ``phase`` identifies which one.
        """
        self.phase = AssemblyPhase.INIT
        logger.info(
            "Assembling sketch archive",
            device_id=device_id,
            sketch_dir=str(sketch_dir),
            working_dir=str(working_dir),
        )
        try:
            self._advance(
                AssemblyPhase.CLEANED,
                lambda: self._clean(working_dir),
                device_id=device_id,
            )
            properties = self._advance(
                AssemblyPhase.TEMPLATES_RENDERED,
                lambda: self._render_templates(sketch_dir, working_dir, context),
                device_id=device_id,
            )
            self._advance(
                AssemblyPhase.TREE_COPIED,
                lambda: self._copy_remaining(sketch_dir, working_dir, properties),
                device_id=device_id,
            )
            zip_path = self._advance(
                AssemblyPhase.ARCHIVED,
                lambda: self._archive_builder.build(working_dir),
                device_id=device_id,
            )
        finally:
            self._discard_working_dir(working_dir)

        self.phase = AssemblyPhase.FINALIZED
        archive = ZipArchive(name=f"{archive_name}{ARCHIVE_SUFFIX}", path=zip_path)
        logger.info("Sketch archive ready", device_id=device_id, archive=str(zip_path))
        return archive
