"""Nickname catalog lookups and edition-string resolution."""
from __future__ import annotations

import re
import urllib.error
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import ClassVar

import yaml

from .. import net

_NICKNAME_RE = re.compile(r"^[a-z]+$")


class VersionResolutionError(RuntimeError):
    """Raised when an edition string cannot be turned into a version."""


class UnknownNickname(VersionResolutionError):
    """Raised when a nickname is not a key of the catalog."""


class NicknameHasNoVersion(VersionResolutionError):
    """Raised when a nickname exists but currently maps to no version."""


@dataclass(slots=True)
class VersionCatalog:
    """Remote YAML mapping of nickname -> version, fetched once per process.

    Fetched documents are cached per URL on the class so several catalogs
    (and managers) in one process share a single download.
    """

    url: str
    timeout: float = 30.0

    _cache: ClassVar[dict[str, dict[str, str | None]]] = {}

    @classmethod
    def clear_cache(cls) -> None:
        """Forget every fetched catalog."""
        cls._cache.clear()

    def entries(self) -> dict[str, str | None]:
        """Return the catalog, fetching it on first use."""
        cached = self._cache.get(self.url)
        if cached is None:
            cached = _parse_catalog(self._fetch_document(), self.url)
            self._cache[self.url] = cached
        return dict(cached)

    def lookup(self, nickname: str) -> str:
        """Return the version mapped to *nickname*."""
        entries = self.entries()
        if nickname not in entries:
            raise UnknownNickname(f"Invalid version identifier: {nickname}")
        version = entries[nickname]
        if version is None:
            raise NicknameHasNoVersion(f"There is not currently a version for {nickname}")
        return version

    def _fetch_document(self) -> str:
        """Download the raw catalog document (isolated for testing)."""
        request = net.build_request(self.url)
        try:
            with net.open_url(request, timeout=self.timeout) as response:
                return response.read().decode("utf-8")
        except (urllib.error.URLError, OSError) as exc:
            raise VersionResolutionError(
                f"Unable to fetch the version catalog from {self.url}: {exc}"
            ) from exc


def _parse_catalog(document: str, source: str) -> dict[str, str | None]:
    try:
        data = yaml.safe_load(document) or {}
    except yaml.YAMLError as exc:
        raise VersionResolutionError(f"Version catalog {source} is not valid YAML: {exc}") from exc
    if not isinstance(data, Mapping):
        raise VersionResolutionError(f"Version catalog {source} must contain a mapping.")
    entries: dict[str, str | None] = {}
    for key, value in data.items():
        entries[str(key)] = None if value in (None, "") else str(value)
    return entries


@dataclass(slots=True)
class VersionResolver:
    """Turn edition strings such as ``community-latest`` into concrete versions."""

    catalog: VersionCatalog
    report: Callable[[str], None] = field(default=lambda message: None)

    def resolve(self, edition: str) -> str:
        """Return the version for *edition*.

        The segment after the final hyphen (the whole string when there is
        none) is looked up in the catalog when it is purely alphabetic;
        anything else is returned as a literal version without network access.
        """
        normalized = edition.strip().lower()
        if not normalized:
            raise VersionResolutionError("Edition must be a non-empty string.")

        prefix, _, nickname = normalized.rpartition("-")
        if not _NICKNAME_RE.match(nickname):
            return normalized

        self.report(f"Retrieving {nickname} version...")
        version = self.catalog.lookup(nickname)
        self.report(f"{nickname.capitalize()} version is: {version}")

        return f"{prefix}-{version}" if prefix else version


__all__ = [
    "NicknameHasNoVersion",
    "UnknownNickname",
    "VersionCatalog",
    "VersionResolutionError",
    "VersionResolver",
]
