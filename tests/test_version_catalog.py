"""Tests for nickname catalog lookups and edition resolution."""
from __future__ import annotations

import pytest

from neo4jctl.providers.version_catalog import (
    NicknameHasNoVersion,
    UnknownNickname,
    VersionCatalog,
    VersionResolutionError,
    VersionResolver,
)

CATALOG_URL = "https://example.invalid/neo4j_versions.yml"


def _catalog(monkeypatch: pytest.MonkeyPatch, document: str) -> tuple[VersionCatalog, list[str]]:
    """Return a catalog whose fetches are served from *document* and counted."""
    catalog = VersionCatalog(url=CATALOG_URL)
    fetches: list[str] = []

    def fake_fetch(self: VersionCatalog) -> str:
        fetches.append(self.url)
        return document

    monkeypatch.setattr(VersionCatalog, "_fetch_document", fake_fetch)
    return catalog, fetches


def test_resolve_bare_nickname(monkeypatch: pytest.MonkeyPatch) -> None:
    """A nickname without a prefix resolves to the catalog version."""
    catalog, _ = _catalog(monkeypatch, "enterprise: 4.0.1\n")

    assert VersionResolver(catalog).resolve("enterprise") == "4.0.1"


def test_resolve_suffix_keeps_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    """Only the trailing nickname is substituted; the edition prefix survives."""
    catalog, _ = _catalog(monkeypatch, "latest: 3.0.1\nstable: 2.3.3\n")
    resolver = VersionResolver(catalog)

    assert resolver.resolve("community-latest") == "community-3.0.1"
    assert resolver.resolve("Enterprise-Stable") == "enterprise-2.3.3"


def test_literal_version_skips_catalog(monkeypatch: pytest.MonkeyPatch) -> None:
    """Strings ending in a version number never touch the network."""
    catalog, fetches = _catalog(monkeypatch, "latest: 3.0.1\n")

    assert VersionResolver(catalog).resolve("community-2.3.3") == "community-2.3.3"
    assert fetches == []


def test_unknown_nickname_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    """Nicknames missing from the catalog raise UnknownNickname."""
    catalog, _ = _catalog(monkeypatch, "latest: 3.0.1\n")

    with pytest.raises(UnknownNickname, match="unknown"):
        VersionResolver(catalog).resolve("x-unknown")


def test_unknown_nickname_is_resolution_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """UnknownNickname belongs to the VersionResolutionError family."""
    catalog, _ = _catalog(monkeypatch, "latest: 3.0.1\n")

    with pytest.raises(VersionResolutionError):
        VersionResolver(catalog).resolve("x-unknown")


def test_nickname_without_version_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    """A nickname mapped to null raises NicknameHasNoVersion."""
    catalog, _ = _catalog(monkeypatch, "latest: 3.0.1\nmilestone:\n")

    with pytest.raises(NicknameHasNoVersion, match="milestone"):
        VersionResolver(catalog).resolve("community-milestone")


def test_catalog_fetched_once_per_url(monkeypatch: pytest.MonkeyPatch) -> None:
    """The catalog is cached across lookups and across catalog instances."""
    catalog, fetches = _catalog(monkeypatch, "latest: 3.0.1\nstable: 2.3.3\n")

    assert catalog.lookup("latest") == "3.0.1"
    assert catalog.lookup("stable") == "2.3.3"
    assert VersionCatalog(url=CATALOG_URL).lookup("latest") == "3.0.1"
    assert fetches == [CATALOG_URL]


def test_catalog_rejects_non_mapping(monkeypatch: pytest.MonkeyPatch) -> None:
    """A catalog document that is not a mapping is a resolution error."""
    catalog, _ = _catalog(monkeypatch, "- 3.0.1\n")

    with pytest.raises(VersionResolutionError, match="mapping"):
        catalog.entries()


def test_resolver_reports_progress(monkeypatch: pytest.MonkeyPatch) -> None:
    """Resolution reports which nickname was looked up and its version."""
    catalog, _ = _catalog(monkeypatch, "latest: 3.0.1\n")
    messages: list[str] = []

    VersionResolver(catalog, report=messages.append).resolve("community-latest")

    assert messages == ["Retrieving latest version...", "Latest version is: 3.0.1"]


def test_blank_edition_rejected() -> None:
    """Blank edition strings raise before any lookup."""
    resolver = VersionResolver(VersionCatalog(url=CATALOG_URL))

    with pytest.raises(VersionResolutionError):
        resolver.resolve("   ")
