"""Operating-system specific naming conventions for Neo4j installations."""
from __future__ import annotations

import os
import signal
from dataclasses import dataclass


class PlatformError(RuntimeError):
    """Raised when an unsupported platform name is requested."""


@dataclass(frozen=True, slots=True)
class PlatformAdapter:
    """File names and conventions that differ between Unix and Windows."""

    name: str
    server_binary: str
    shell_binary: str
    archive_suffix: str
    kill_signal: int

    @property
    def archive_format(self) -> str:
        """Return ``zip`` or ``tar.gz`` depending on the archive suffix."""
        return "zip" if self.archive_suffix.endswith(".zip") else "tar.gz"


UNIX = PlatformAdapter(
    name="unix",
    server_binary="neo4j",
    shell_binary="neo4j-shell",
    archive_suffix="unix.tar.gz",
    kill_signal=int(getattr(signal, "SIGKILL", signal.SIGTERM)),
)

WINDOWS = PlatformAdapter(
    name="windows",
    server_binary="Neo4j.bat",
    shell_binary="Neo4jShell.bat",
    archive_suffix="windows.zip",
    kill_signal=int(signal.SIGTERM),
)

PLATFORMS = {adapter.name: adapter for adapter in (UNIX, WINDOWS)}


def detect_platform() -> PlatformAdapter:
    """Return the adapter matching the host operating system."""
    return WINDOWS if os.name == "nt" else UNIX


def platform_for(name: str) -> PlatformAdapter:
    """Return the adapter for *name* (``auto``, ``unix`` or ``windows``)."""
    normalized = name.strip().lower()
    if normalized == "auto":
        return detect_platform()
    try:
        return PLATFORMS[normalized]
    except KeyError:
        allowed = ", ".join(["auto", *sorted(PLATFORMS)])
        raise PlatformError(f"Unsupported platform '{name}'. Allowed: {allowed}.") from None


__all__ = [
    "PLATFORMS",
    "PlatformAdapter",
    "PlatformError",
    "UNIX",
    "WINDOWS",
    "detect_platform",
    "platform_for",
]
