"""
sketch_archive.copier — Recursive sketch tree copy with base-name exclusion.

Exclusion matches a file's base name only, at any depth: excluding
``sketch.properties`` skips ``sketch.properties`` and ``conf/sketch.properties``
alike.
"""

from __future__ import annotations

import shutil
from collections.abc import Collection
from pathlib import Path

from sketch_archive.exceptions import FilesystemError

COPY_BUFFER_SIZE = 1024


def _copy_file(src: Path, dest: Path) -> None:
    with src.open("rb") as reader, dest.open("wb") as writer:
        shutil.copyfileobj(reader, writer, COPY_BUFFER_SIZE)


def copy_tree(src: Path, dest: Path, exclude_names: Collection[str]) -> None:
    """Copy src into dest, skipping files whose base name is in exclude_names.

    Raises FilesystemError on the first unreadable source or uncreatable
    destination; the copy is not rolled back.
    """
    if src.is_dir():
        try:
            dest.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError("Could not create directory", path=str(dest)) from exc
        try:
            entries = sorted(src.iterdir())
        except OSError as exc:
            raise FilesystemError("Could not list directory", path=str(src)) from exc
        for entry in entries:
            copy_tree(entry, dest / entry.name, exclude_names)
        return

    if src.name in exclude_names:
        return

    try:
        _copy_file(src, dest)
    except OSError as exc:
        raise FilesystemError("Could not copy file", path=str(src)) from exc
