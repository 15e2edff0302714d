"""
sketch_archive.archive — Zip archive construction from a working directory.

Traversal modes:
    legacy (default)  top-level files -> "{file}", files one directory down ->
                      "{subdir}/{file}".  Anything deeper is skipped.  Matches
                      the layout of archives already delivered to agents.
    recursive         every file at any depth, named by its POSIX relative path.

Output is reproducible: entries are written in sorted order with a fixed
timestamp and fixed permissions, so identical working directories produce
byte-identical archives.

The archive is written to "{name}.zip.partial" and renamed into place only
after every entry is written; a failed build leaves no archive behind.
"""

from __future__ import annotations

import os
import shutil
import zipfile
from pathlib import Path

from aws_lambda_powertools import Logger

from sketch_archive.exceptions import ArchiveError
from sketch_archive.models import ARCHIVE_SUFFIX

logger = Logger(service="sketch-archive")

ARCHIVE_BUFFER_SIZE = 2048
PARTIAL_SUFFIX = ".partial"
# Zip timestamps cannot predate 1980.
ENTRY_TIMESTAMP = (1980, 1, 1, 0, 0, 0)
ENTRY_MODE = 0o644
# Path components kept by the legacy traversal: "{file}" or "{subdir}/{file}".
LEGACY_DEPTH = 2

# (arcname, source file)
ArchiveEntry = tuple[str, Path]


def archive_path_for(working_dir: Path) -> Path:
    """Return the sibling archive path for a working directory: "{dir}.zip"."""
    return working_dir.with_name(working_dir.name + ARCHIVE_SUFFIX)


def _list_dir(directory: Path) -> list[Path] | None:
    try:
        return sorted(directory.iterdir())
    except OSError:
        logger.warning("Could not enumerate directory", path=str(directory))
        return None


class ArchiveBuilder:
    """Builds "{working_dir}.zip" from the contents of working_dir."""

    def __init__(self, *, recursive: bool = False, buffer_size: int = ARCHIVE_BUFFER_SIZE) -> None:
        self.recursive = recursive
        self.buffer_size = buffer_size

    # ------------------------------------------------------------------
    # Entry collection
    # ------------------------------------------------------------------

    def includes_depth(self, depth: int) -> bool:
        """True when a file 'depth' path components below working_dir is archived."""
        return self.recursive or depth <= LEGACY_DEPTH

    def collect_entries(self, working_dir: Path) -> list[ArchiveEntry] | None:
        """Return (arcname, path) pairs, or None if a directory cannot be listed."""
        if self.recursive:
            return self._collect_recursive(working_dir, prefix="")
        return self._collect_two_level(working_dir)

    def _collect_two_level(self, working_dir: Path) -> list[ArchiveEntry] | None:
        top = _list_dir(working_dir)
        if top is None:
            return None
        entries: list[ArchiveEntry] = []
        for item in top:
            if not item.is_dir():
                entries.append((item.name, item))
                continue
            children = _list_dir(item)
            if children is None:
                return None
            for child in children:
                if child.is_dir():
                    logger.warning(
                        "Skipping nested directory; legacy traversal is two levels deep",
                        path=str(child),
                    )
                    continue
                entries.append((f"{item.name}/{child.name}", child))
        return entries

    def _collect_recursive(self, directory: Path, *, prefix: str) -> list[ArchiveEntry] | None:
        listing = _list_dir(directory)
        if listing is None:
            return None
        entries: list[ArchiveEntry] = []
        for item in listing:
            arcname = f"{prefix}{item.name}"
            if item.is_dir():
                nested = self._collect_recursive(item, prefix=f"{arcname}/")
                if nested is None:
                    return None
                entries.extend(nested)
            else:
                entries.append((arcname, item))
        return entries

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _write_entry(self, archive: zipfile.ZipFile, arcname: str, source: Path) -> None:
        info = zipfile.ZipInfo(arcname, date_time=ENTRY_TIMESTAMP)
        info.compress_type = zipfile.ZIP_DEFLATED
        info.create_system = 3  # Unix, so external_attr carries the mode
        info.external_attr = (ENTRY_MODE & 0xFFFF) << 16
        with source.open("rb") as reader, archive.open(info, "w") as writer:
            shutil.copyfileobj(reader, writer, self.buffer_size)

    def write_entries(self, working_dir: Path, dest: Path) -> bool:
        """Write the archive for working_dir to dest.

        Returns False when the working directory (or one of its
        subdirectories) cannot be enumerated; nothing is written in that case.
        Raises ArchiveError if writing fails part-way; the partial file is removed.
        """
        entries = self.collect_entries(working_dir)
        if entries is None:
            return False

        partial = dest.with_name(dest.name + PARTIAL_SUFFIX)
        try:
            with zipfile.ZipFile(partial, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                for arcname, source in entries:
                    self._write_entry(archive, arcname, source)
            os.replace(partial, dest)
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise ArchiveError(f"Could not write archive {dest}: {exc}") from exc

        logger.info("Archive written", path=str(dest), entries=len(entries))
        return True

    def build(self, working_dir: Path) -> Path:
        """Build "{working_dir}.zip" and return its path.

        Raises ArchiveError if the working directory cannot be enumerated or
        the archive cannot be written.
        """
        dest = archive_path_for(working_dir)
        if not self.write_entries(working_dir, dest):
            raise ArchiveError(f"Could not enumerate working directory {working_dir}")
        return dest
