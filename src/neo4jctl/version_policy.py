"""Version-dependent layout and property names for Neo4j installations.

Neo4j 3.0.0 renamed the main configuration file, moved the pid file and
switched the HTTP connector settings to a new key scheme. Every decision
that depends on that threshold lives in :class:`VersionPolicy`.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from packaging.version import InvalidVersion, Version

from .ports import PortPair

THRESHOLD_VERSION = Version("3.0.0")
KERNEL_JAR_GLOB = "lib/neo4j-kernel-*.jar"
_KERNEL_JAR_RE = re.compile(r"neo4j-kernel-([\d.]+)\.jar$")

AUTH_PROPERTY_KEYS = (
    "dbms.security.authorization_enabled",
    "dbms.security.auth_enabled",
)


class VersionUndetected(RuntimeError):
    """Raised when the installed server version cannot be determined."""


def detect_server_version(install_path: Path) -> str:
    """Return the server version encoded in the installed kernel jar name."""
    for candidate in sorted(install_path.glob(KERNEL_JAR_GLOB)):
        match = _KERNEL_JAR_RE.search(candidate.name)
        if match:
            return match.group(1).strip(".")
    raise VersionUndetected(
        f"Unable to detect the Neo4j version: no {KERNEL_JAR_GLOB} found under {install_path}."
    )


@dataclass(frozen=True, slots=True)
class ServerLayout:
    """Resolved version-dependent paths of one installation."""

    config_path: Path
    pid_path: Path


@dataclass(frozen=True, slots=True)
class VersionPolicy:
    """Derive paths and property names from a server version string."""

    version: str

    @classmethod
    def for_installation(cls, install_path: Path) -> VersionPolicy:
        """Build the policy for the server installed at *install_path*."""
        return cls(detect_server_version(install_path))

    @property
    def parsed_version(self) -> Version:
        """Return the version as a comparable :class:`packaging.version.Version`."""
        try:
            return Version(self.version)
        except InvalidVersion as exc:
            raise VersionUndetected(f"Unrecognised Neo4j version '{self.version}'.") from exc

    @property
    def is_modern(self) -> bool:
        """Return ``True`` for 3.0.0 and later."""
        return self.parsed_version >= THRESHOLD_VERSION

    @property
    def config_relative_path(self) -> Path:
        """Return the main config file, relative to the installation."""
        if self.is_modern:
            return Path("conf") / "neo4j.conf"
        return Path("conf") / "neo4j-server.properties"

    @property
    def pid_relative_path(self) -> Path:
        """Return the pid file, relative to the installation."""
        if self.is_modern:
            return Path("run") / "neo4j.pid"
        return Path("data") / "neo4j-service.pid"

    def layout(self, install_path: Path) -> ServerLayout:
        """Return absolute paths for an installation rooted at *install_path*."""
        return ServerLayout(
            config_path=install_path / self.config_relative_path,
            pid_path=install_path / self.pid_relative_path,
        )

    def port_properties(self, ports: PortPair) -> dict[str, object]:
        """Return the connector settings binding HTTP to *ports* and disabling HTTPS."""
        if self.is_modern:
            return {
                "dbms.connector.https.enabled": False,
                "dbms.connector.http.enabled": True,
                "dbms.connector.http.address": f"0.0.0.0:{ports.http}",
                "dbms.connector.https.address": f"localhost:{ports.https}",
            }
        return {
            "org.neo4j.server.webserver.https.enabled": False,
            "org.neo4j.server.webserver.port": ports.http,
            "org.neo4j.server.webserver.https.port": ports.https,
        }

    def auth_properties(self, enabled: bool) -> dict[str, object]:
        """Return the authentication toggles.

        Both historical key names are returned; the property store only
        touches keys already present in the file.
        """
        return {key: enabled for key in AUTH_PROPERTY_KEYS}


__all__ = [
    "AUTH_PROPERTY_KEYS",
    "KERNEL_JAR_GLOB",
    "THRESHOLD_VERSION",
    "ServerLayout",
    "VersionPolicy",
    "VersionUndetected",
    "detect_server_version",
]
