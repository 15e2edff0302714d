"""
sketch_archive.renderer — {KEY} placeholder substitution for template files.

Substitution is plain text replacement: keys and values are never interpreted
as patterns.  Keys are applied in context iteration order, one pass per key,
so a fixed context always renders the same bytes.
"""

from __future__ import annotations

from pathlib import Path

from aws_lambda_powertools import Logger

from sketch_archive.exceptions import FilesystemError
from sketch_archive.models import SubstitutionContext

logger = Logger(service="sketch-archive")

TEMPLATE_ENCODING = "utf-8"


def placeholder(key: str) -> str:
    return "{" + key + "}"


def substitute(content: str, context: SubstitutionContext) -> str:
    """Replace every literal {key} in content.  Unknown placeholders are left as-is."""
    for key, value in context.items():
        content = content.replace(placeholder(key), str(value))
    return content


def render_template(source: Path, dest: Path, context: SubstitutionContext) -> None:
    """Render source into dest, creating parent directories and overwriting dest."""
    try:
        with source.open(encoding=TEMPLATE_ENCODING, newline="") as fh:
            content = fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise FilesystemError("Could not read template", path=str(source)) from exc

    rendered = substitute(content, context)

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        with dest.open("w", encoding=TEMPLATE_ENCODING, newline="") as fh:
            fh.write(rendered)
    except OSError as exc:
        raise FilesystemError("Could not write rendered template", path=str(dest)) from exc

    logger.debug("Rendered template", source=str(source), dest=str(dest), keys=len(context))
