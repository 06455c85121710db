"""Configuration loader for neo4jctl.

Configuration values are merged from multiple sources, later sources
winning:

1. Built-in defaults.
2. ``~/.config/neo4jctl/config.yml`` (or an override path).
3. Environment variables prefixed with ``NEO4JCTL_``.
4. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export NEO4JCTL_INSTALL_PATH=/opt/neo4j
    export NEO4JCTL_CATALOG__URL=https://example.invalid/versions.yml

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally. The resulting configuration is exposed as immutable
``dataclasses`` for convenient access and type safety.

:class:`ConfigError` is also raised by :mod:`neo4jctl.properties` when a
server property file cannot be read or written.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import cast

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required to load neo4jctl configuration. Install with "
        "`pip install neo4jctl` or ensure PyYAML>=6.0 is available."
    ) from exc


ENV_PREFIX = "NEO4JCTL_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}

DEFAULT_CATALOG_URL = (
    "https://raw.githubusercontent.com/neo4jrb/neo4j-rake_tasks/master/neo4j_versions.yml"
)
DEFAULT_DOWNLOAD_BASE_URL = "https://dist.neo4j.org"
DEFAULT_SERVER_ADDRESS = "http://localhost:7474"


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails or a property file is unusable."""


@dataclass(frozen=True)
class CatalogConfig:
    """Location of the remote nickname -> version catalog."""

    url: str = DEFAULT_CATALOG_URL

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"url": self.url}


@dataclass(frozen=True)
class DownloadConfig:
    """Where server archives are fetched from."""

    base_url: str = DEFAULT_DOWNLOAD_BASE_URL

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"base_url": self.base_url}


@dataclass(frozen=True)
class PasswordConfig:
    """Defaults offered by the password-change prompts."""

    address: str = DEFAULT_SERVER_ADDRESS
    username: str = "neo4j"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"address": self.address, "username": self.username}


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for neo4jctl."""

    config_file: Path
    install_path: Path
    logs_dir: Path
    platform: str
    admin_gate: str
    stop_timeout: float | None
    http_timeout: float
    catalog: CatalogConfig
    download: DownloadConfig
    password: PasswordConfig

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "install_path": str(self.install_path),
            "logs_dir": str(self.logs_dir),
            "platform": self.platform,
            "admin_gate": self.admin_gate,
            "stop_timeout": self.stop_timeout,
            "http_timeout": self.http_timeout,
            "catalog": self.catalog.to_dict(),
            "download": self.download.to_dict(),
            "password": self.password.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "~/.config/neo4jctl/config.yml",
    "install_path": "db/neo4j/development",
    "logs_dir": "~/.local/state/neo4jctl/logs",
    "platform": "auto",
    "admin_gate": "allow",
    "stop_timeout": None,
    "http_timeout": 30.0,
    "catalog": {
        "url": DEFAULT_CATALOG_URL,
    },
    "download": {
        "base_url": DEFAULT_DOWNLOAD_BASE_URL,
    },
    "password": {
        "address": DEFAULT_SERVER_ADDRESS,
        "username": "neo4j",
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
ALLOWED_PLATFORMS = {"auto", "unix", "windows"}
ALLOWED_ADMIN_GATES = {"allow", "superuser"}
_NESTED_KEYS: dict[str, set[str]] = {
    "catalog": {"url"},
    "download": {"base_url"},
    "password": {"address", "username"},
}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override).expanduser()
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR]).expanduser()
    return Path(default_path).expanduser()


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    for section, allowed in _NESTED_KEYS.items():
        mapping = _as_dict(raw.get(section), section)
        unknown = set(mapping.keys()) - allowed
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown {section} configuration keys: {joined}.")

    platform = str(raw.get("platform", "auto")).strip().lower()
    if platform not in ALLOWED_PLATFORMS:
        allowed_text = ", ".join(sorted(ALLOWED_PLATFORMS))
        raise ConfigError(f"Unsupported platform '{platform}'. Allowed: {allowed_text}.")

    gate = str(raw.get("admin_gate", "allow")).strip().lower()
    if gate not in ALLOWED_ADMIN_GATES:
        allowed_text = ", ".join(sorted(ALLOWED_ADMIN_GATES))
        raise ConfigError(f"Unsupported admin gate '{gate}'. Allowed: {allowed_text}.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    stop_timeout_value = raw.get("stop_timeout")
    stop_timeout: float | None = None
    if stop_timeout_value not in (None, ""):
        stop_timeout = _expect_positive_float(stop_timeout_value, "stop_timeout", default=60.0)

    catalog_mapping = _as_dict(raw.get("catalog"), "catalog")
    download_mapping = _as_dict(raw.get("download"), "download")
    password_mapping = _as_dict(raw.get("password"), "password")

    return AppConfig(
        config_file=_to_path(raw.get("config_file")),
        install_path=_to_path(raw.get("install_path")),
        logs_dir=_to_path(raw.get("logs_dir")),
        platform=str(raw.get("platform", "auto")).strip().lower(),
        admin_gate=str(raw.get("admin_gate", "allow")).strip().lower(),
        stop_timeout=stop_timeout,
        http_timeout=_expect_positive_float(raw.get("http_timeout"), "http_timeout", default=30.0),
        catalog=CatalogConfig(
            url=_expect_url(catalog_mapping.get("url", DEFAULT_CATALOG_URL), "catalog.url"),
        ),
        download=DownloadConfig(
            base_url=_expect_url(
                download_mapping.get("base_url", DEFAULT_DOWNLOAD_BASE_URL),
                "download.base_url",
            ).rstrip("/"),
        ),
        password=PasswordConfig(
            address=_expect_url(
                password_mapping.get("address", DEFAULT_SERVER_ADDRESS),
                "password.address",
            ).rstrip("/"),
            username=_expect_str(password_mapping.get("username", "neo4j"), "password.username"),
        ),
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        else:
            result[key] = value
    return result


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _expect_url(value: object, key: str) -> str:
    text = _expect_str(value, key).strip()
    if not text.startswith(("http://", "https://")):
        raise ConfigError(f"{key} must be an http(s) URL. Got {text!r}.")
    return text


def _expect_positive_float(
    value: object | None,
    label: str,
    *,
    default: float,
) -> float:
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a number. Got boolean {value!r}.")
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    else:
        raise ConfigError(
            f"Expected {label} to be numeric. Got {type(value).__name__}."
        )
    if numeric <= 0:
        raise ConfigError(f"{label} must be greater than zero. Got {numeric}.")
    return numeric


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "CatalogConfig",
    "ConfigError",
    "DownloadConfig",
    "PasswordConfig",
    "load_config",
]
