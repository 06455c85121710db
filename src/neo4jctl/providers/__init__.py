"""Provider interfaces for neo4jctl."""
from __future__ import annotations

from .downloader import ArchiveUnavailable, Downloader, DownloadError
from .installer import InstallError, Installer, InstallResult
from .password import (
    ConsolePrompter,
    MissingNewPassword,
    PasswordChangeError,
    PasswordChanger,
    PasswordChangeResult,
    Prompter,
)
from .process import CommandFailed, ProcessController, ProcessState, ShutdownTimeout, StopOutcome
from .version_catalog import (
    NicknameHasNoVersion,
    UnknownNickname,
    VersionCatalog,
    VersionResolutionError,
    VersionResolver,
)

__all__ = [
    "ArchiveUnavailable",
    "CommandFailed",
    "ConsolePrompter",
    "DownloadError",
    "Downloader",
    "InstallError",
    "InstallResult",
    "Installer",
    "MissingNewPassword",
    "NicknameHasNoVersion",
    "PasswordChangeError",
    "PasswordChangeResult",
    "PasswordChanger",
    "ProcessController",
    "ProcessState",
    "Prompter",
    "ShutdownTimeout",
    "StopOutcome",
    "UnknownNickname",
    "VersionCatalog",
    "VersionResolutionError",
    "VersionResolver",
]
