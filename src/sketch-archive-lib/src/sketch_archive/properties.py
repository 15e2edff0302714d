"""
sketch_archive.properties — sketch.properties reader.

Parses the Java-style properties file shipped at the root of every sketch
directory.  Two keys are read:

    templates    comma-separated relative file names requiring substitution
    zipfilename  base output archive name (informational)

The file is decoded as ISO-8859-1; other characters are written as \\uXXXX
escapes.  Keys and values honour the usual backslash escapes (\\t \\n \\r \\f
\\uXXXX, and a backslash before any other character yields that character),
so ``k\\=ey=v`` defines the key ``k=ey``.

``templates`` is split on "," with no whitespace trimming: ``a.cfg, b.cfg``
yields the second name as `` b.cfg``.  Sketch authors must not pad the list.
"""

from __future__ import annotations

import re
from pathlib import Path

from aws_lambda_powertools import Logger

from sketch_archive.exceptions import ConfigurationError, FilesystemError
from sketch_archive.models import SketchProperties

logger = Logger(service="sketch-archive")

SKETCH_PROPERTIES_FILE = "sketch.properties"
TEMPLATES_KEY = "templates"
ZIP_FILE_NAME_KEY = "zipfilename"
PROPERTIES_ENCODING = "latin-1"

_COMMENT_PREFIXES = ("#", "!")
_SEPARATORS = ("=", ":")
_WHITESPACE = " \t\f"
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_ESCAPE = re.compile(r"\\(u[0-9a-fA-F]{4}|u|.)", re.DOTALL)
_CONTROL_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def _logical_lines(text: str) -> list[str]:
    """Join backslash-continued physical lines; drop blanks and comments."""
    lines: list[str] = []
    pending = ""
    continuing = False
    for raw in _LINE_BREAK.split(text):
        line = raw.lstrip(_WHITESPACE)
        if not continuing and (not line or line.startswith(_COMMENT_PREFIXES)):
            continue
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending += line[:-1]
            continuing = True
            continue
        lines.append(pending + line)
        pending = ""
        continuing = False
    if pending:
        lines.append(pending)
    return lines


def _split_entry(line: str) -> tuple[str, str]:
    """Split a logical line at the first unescaped "=", ":" or whitespace run."""
    escaped = False
    for index, char in enumerate(line):
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char in _SEPARATORS:
            return line[:index], line[index + 1 :].lstrip(_WHITESPACE)
        elif char in _WHITESPACE:
            rest = line[index:].lstrip(_WHITESPACE)
            if rest[:1] in _SEPARATORS:
                rest = rest[1:]
            return line[:index], rest.lstrip(_WHITESPACE)
    return line, ""


def _unescape_match(match: re.Match[str]) -> str:
    token = match.group(1)
    if len(token) == 5:
        return chr(int(token[1:], 16))
    if token == "u":
        raise ConfigurationError(f"Malformed \\uxxxx escape in properties: {match.string!r}")
    return _CONTROL_ESCAPES.get(token, token)


def unescape(text: str) -> str:
    """Resolve properties backslash escapes in a key or value."""
    return _ESCAPE.sub(_unescape_match, text)


def parse_properties(text: str) -> dict[str, str]:
    """Parse properties text into a dict.  Later duplicates win.

    Raises:
        ConfigurationError: a \\uXXXX escape is malformed.
    """
    entries: dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split_entry(line)
        if key:
            entries[unescape(key)] = unescape(value)
    return entries


def read_sketch_properties(path: Path) -> SketchProperties:
    """Load SketchProperties from a sketch.properties file.

    Raises:
        FilesystemError:    file missing or unreadable.
        ConfigurationError: the ``templates`` key is absent.
    """
    try:
        text = path.read_text(encoding=PROPERTIES_ENCODING)
    except OSError as exc:
        logger.error("Failed to read sketch properties", path=str(path), error=str(exc))
        raise FilesystemError("Could not read sketch properties", path=str(path)) from exc

    entries = parse_properties(text)
    if TEMPLATES_KEY not in entries:
        raise ConfigurationError(f"{TEMPLATES_KEY!r} property missing from {path}")

    templates = entries[TEMPLATES_KEY]
    names = tuple(templates.split(",")) if templates else ()
    return SketchProperties(
        template_file_names=names,
        base_archive_name=entries.get(ZIP_FILE_NAME_KEY),
    )
