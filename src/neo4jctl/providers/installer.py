"""Installer utilities for Neo4j server archives."""
from __future__ import annotations

import shutil
import tarfile
import tempfile
import zipfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from ..platform import PlatformAdapter


class InstallError(RuntimeError):
    """Raised when extracting a Neo4j archive fails."""


@dataclass(frozen=True, slots=True)
class InstallResult:
    """Metadata describing a completed (or skipped) installation."""

    version: str
    path: Path
    already_installed: bool
    installed_at: str | None = None


@dataclass(slots=True)
class Installer:
    """Extract Neo4j distribution archives into an installation path."""

    install_path: Path
    platform: PlatformAdapter

    @property
    def server_binary_path(self) -> Path:
        """Return the server binary whose presence marks an installation."""
        return self.install_path / "bin" / self.platform.server_binary

    def is_installed(self) -> bool:
        """Return ``True`` when the server binary already exists."""
        return self.server_binary_path.exists()

    def install(self, archive_path: Path, version: str) -> InstallResult:
        """Extract *archive_path* into the installation path, then delete it.

        Installing over an existing installation is a no-op that leaves the
        archive untouched.
        """
        if self.is_installed():
            return InstallResult(version=version, path=self.install_path, already_installed=True)

        self.install_path.mkdir(parents=True, exist_ok=True)
        staging_dir = Path(
            tempfile.mkdtemp(prefix=f"neo4jctl-install-{version}-", dir=str(self.install_path))
        )
        try:
            self._extract(archive_path, staging_dir)
            self._promote(_archive_root(staging_dir))
        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)

        if not self.is_installed():
            raise InstallError(
                f"Archive extracted but {self.server_binary_path} is missing; "
                "is this a Neo4j distribution?"
            )

        archive_path.unlink(missing_ok=True)
        installed_at = datetime.now(tz=UTC).isoformat(timespec="seconds").replace("+00:00", "Z")
        return InstallResult(
            version=version,
            path=self.install_path,
            already_installed=False,
            installed_at=installed_at,
        )

    def _extract(self, archive_path: Path, destination: Path) -> None:
        """Unpack *archive_path* into *destination* (isolated for testing)."""
        try:
            if self.platform.archive_format == "zip":
                with zipfile.ZipFile(archive_path) as archive:
                    _reject_escaping_members(archive.namelist(), destination)
                    archive.extractall(destination)
            else:
                with tarfile.open(archive_path, "r:*") as archive:
                    archive.extractall(destination, filter="data")
        except (tarfile.TarError, zipfile.BadZipFile, OSError) as exc:
            raise InstallError(f"Unable to extract {archive_path}: {exc}") from exc

    def _promote(self, root: Path) -> None:
        """Move the extracted tree from *root* into the installation path."""
        for child in sorted(root.iterdir()):
            target = self.install_path / child.name
            if child.is_dir() and target.is_dir():
                shutil.copytree(child, target, dirs_exist_ok=True)
            else:
                shutil.move(str(child), str(target))


def _reject_escaping_members(names: list[str], destination: Path) -> None:
    root = destination.resolve()
    for name in names:
        if not (root / name).resolve().is_relative_to(root):
            raise InstallError(f"Archive member {name!r} escapes {destination}.")


def _archive_root(staging_dir: Path) -> Path:
    """Return the single top-level directory of an archive, or *staging_dir*."""
    entries = list(staging_dir.iterdir())
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return staging_dir


__all__ = ["InstallError", "InstallResult", "Installer"]
