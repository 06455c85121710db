"""Format-preserving editor for Neo4j ``key=value`` property files.

The file is held as an ordered list of :class:`ConfigLine` records. Only
records whose key matches a requested property are rewritten; every other
line, comments and blank lines included, is written back byte for byte.
Bytes that are not valid UTF-8 round-trip through ``surrogateescape``.
"""
from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .config import ConfigError

COMMENT_MARKER = "#"


def _split_line_ending(raw: str) -> tuple[str, str]:
    """Return ``(content, ending)`` for a line produced by ``splitlines(True)``."""
    for ending in ("\r\n", "\n", "\r"):
        if raw.endswith(ending):
            return raw[: -len(ending)], ending
    return raw, ""


def parse_key(content: str) -> str | None:
    """Return the property key of *content*, or ``None`` for non-property lines.

    A single leading comment marker is ignored, so commented-out defaults
    such as ``#dbms.security.auth_enabled=false`` still yield their key.
    """
    text = content.strip()
    if text.startswith(COMMENT_MARKER):
        text = text[len(COMMENT_MARKER) :].lstrip()
    key, separator, _ = text.partition("=")
    key = key.strip()
    if not separator or not key or any(char.isspace() for char in key):
        return None
    return key


def render_value(value: object) -> str:
    """Return the property-file spelling of *value*."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(slots=True)
class ConfigLine:
    """One physical line of a property file."""

    raw: str
    key: str | None = None

    @classmethod
    def parse(cls, raw: str) -> ConfigLine:
        """Build a record from *raw*, including its line ending."""
        content, _ = _split_line_ending(raw)
        return cls(raw=raw, key=parse_key(content))

    @property
    def ending(self) -> str:
        """Return the line terminator carried by this line."""
        return _split_line_ending(self.raw)[1]

    def replace(self, key: str, value: object) -> None:
        """Overwrite the line with an uncommented ``key=value`` assignment."""
        self.raw = f"{key}={render_value(value)}{self.ending}"
        self.key = key


@dataclass(slots=True)
class ConfigStore:
    """Read, patch and write a single property file."""

    path: Path

    def read_lines(self) -> list[ConfigLine]:
        """Return the file as an ordered list of :class:`ConfigLine` records."""
        try:
            with self.path.open(
                "r", encoding="utf-8", errors="surrogateescape", newline=""
            ) as handle:
                contents = handle.read()
        except OSError as exc:
            raise ConfigError(f"Unable to read property file {self.path}: {exc}") from exc
        return parse_lines(contents)

    def modify(self, properties: Mapping[str, object]) -> list[str]:
        """Rewrite the first line for each property; return the keys written.

        Properties absent from the file are skipped rather than appended.
        """
        lines = self.read_lines()
        written = apply_properties(lines, properties)
        self._write("".join(line.raw for line in lines))
        return written

    def _write(self, contents: str) -> None:
        directory = self.path.parent
        try:
            tmp_fd, tmp_name = tempfile.mkstemp(dir=str(directory), prefix=f".{self.path.name}.")
        except OSError as exc:
            raise ConfigError(f"Unable to write property file {self.path}: {exc}") from exc
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(
                tmp_fd, "w", encoding="utf-8", errors="surrogateescape", newline=""
            ) as handle:
                handle.write(contents)
            shutil.copymode(self.path, tmp_path)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise ConfigError(f"Unable to write property file {self.path}: {exc}") from exc
        finally:
            tmp_path.unlink(missing_ok=True)


def parse_lines(contents: str) -> list[ConfigLine]:
    """Split *contents* into :class:`ConfigLine` records, keeping line endings."""
    return [ConfigLine.parse(raw) for raw in contents.splitlines(keepends=True)]


def apply_properties(lines: list[ConfigLine], properties: Mapping[str, object]) -> list[str]:
    """Patch *lines* in place and return the property names that matched."""
    written: list[str] = []
    for name, value in properties.items():
        for line in lines:
            if line.key == name:
                line.replace(name, value)
                written.append(name)
                break
    return written


def modify_contents(contents: str, properties: Mapping[str, object]) -> str:
    """Return *contents* with *properties* applied."""
    lines = parse_lines(contents)
    apply_properties(lines, properties)
    return "".join(line.raw for line in lines)


__all__ = [
    "ConfigLine",
    "ConfigStore",
    "apply_properties",
    "modify_contents",
    "parse_key",
    "parse_lines",
    "render_value",
]
