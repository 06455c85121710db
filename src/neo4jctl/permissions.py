"""Elevated-permission gates guarding administrative server commands."""
from __future__ import annotations

import ctypes
import os
from collections.abc import Callable

AdminGate = Callable[[str], bool]
"""Predicate receiving the operation name; ``False`` rejects the operation."""


class PermissionDenied(RuntimeError):
    """Raised when the admin gate rejects an operation."""


def allow_all(operation: str) -> bool:
    """Accept every operation."""
    return True


def require_superuser(operation: str) -> bool:
    """Accept operations only for root (POSIX) or an administrator (Windows)."""
    geteuid = getattr(os, "geteuid", None)
    if geteuid is not None:
        return geteuid() == 0
    windll = getattr(ctypes, "windll", None)
    if windll is None:
        return False
    return bool(windll.shell32.IsUserAnAdmin())


GATES: dict[str, AdminGate] = {
    "allow": allow_all,
    "superuser": require_superuser,
}


def gate_for(name: str) -> AdminGate:
    """Return the named gate from :data:`GATES`."""
    try:
        return GATES[name]
    except KeyError:
        allowed = ", ".join(sorted(GATES))
        raise PermissionDenied(f"Unknown admin gate '{name}'. Allowed: {allowed}.") from None


def check(gate: AdminGate, operation: str) -> None:
    """Raise :class:`PermissionDenied` unless *gate* accepts *operation*."""
    if not gate(operation):
        raise PermissionDenied(f"Administrator privileges are required to {operation} the server.")


__all__ = [
    "AdminGate",
    "GATES",
    "PermissionDenied",
    "allow_all",
    "check",
    "gate_for",
    "require_superuser",
]
