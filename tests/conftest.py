"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from neo4jctl.platform import UNIX
from neo4jctl.providers.version_catalog import VersionCatalog


@pytest.fixture(autouse=True)
def _clear_catalog_cache() -> Iterator[None]:
    """Keep the process-wide version catalog cache isolated per test."""
    VersionCatalog.clear_cache()
    yield
    VersionCatalog.clear_cache()


@pytest.fixture
def make_installation(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory creating a fake Neo4j installation tree."""

    def _make(
        version: str = "3.0.1",
        *,
        config: str | None = None,
        name: str = "neo4j",
    ) -> Path:
        root = tmp_path / name
        (root / "bin").mkdir(parents=True, exist_ok=True)
        (root / "lib").mkdir(parents=True, exist_ok=True)
        (root / "conf").mkdir(parents=True, exist_ok=True)
        (root / "bin" / UNIX.server_binary).write_text("#!/bin/sh\n", encoding="utf-8")
        (root / "bin" / UNIX.shell_binary).write_text("#!/bin/sh\n", encoding="utf-8")
        (root / "lib" / f"neo4j-kernel-{version}.jar").write_bytes(b"")
        if config is not None:
            modern = int(version.split(".")[0]) >= 3
            config_name = "neo4j.conf" if modern else "neo4j-server.properties"
            (root / "conf" / config_name).write_text(config, encoding="utf-8")
        return root

    return _make
