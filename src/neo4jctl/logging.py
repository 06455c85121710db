"""Structured operation logging for neo4jctl.

Every manager command runs inside :meth:`StructuredLogger.operation`, which
appends one JSON record per operation to ``operations.jsonl`` in the logs
directory. Records carry the command name, its arguments, the target it
acted upon, the ordered steps it took and the final result.

Logging is best-effort: when the directory cannot be created or a write
fails, the logger disables itself and the operation carries on.
"""
from __future__ import annotations

import json
import secrets
import time
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

OPERATIONS_LOG_NAME = "operations.jsonl"


def _json_safe(value: object) -> Any:
    """Return *value* converted into something ``json.dumps`` accepts."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return str(value)


@dataclass(slots=True)
class OperationScope:
    """Mutable result holder yielded by :meth:`StructuredLogger.operation`."""

    command: str
    op_id: str
    steps: list[dict[str, object]] = field(default_factory=list)
    result: dict[str, object] | None = None

    def add_step(self, name: str, *, status: str = "success", detail: object = None) -> None:
        """Record an intermediate step of the operation."""
        step: dict[str, object] = {"name": name, "status": status}
        if detail is not None:
            step["detail"] = _json_safe(detail)
        self.steps.append(step)

    def success(
        self,
        message: str,
        *,
        changed: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as successful."""
        self._record("success", message, changed=changed, context=context)

    def warning(
        self,
        message: str,
        *,
        warnings: Iterable[str] | None = None,
        errors: Iterable[str] | None = None,
        changed: int | None = None,
        backups: Iterable[str] | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as completed with warnings."""
        self._record(
            "warning",
            message,
            warnings=list(warnings or [message]),
            errors=list(errors or []),
            changed=changed,
            backups=list(backups) if backups is not None else None,
            context=context,
        )

    def error(
        self,
        message: str,
        *,
        errors: Iterable[str] | None = None,
        rc: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as failed."""
        self._record(
            "error",
            message,
            errors=list(errors or [message]),
            rc=rc,
            context=context,
        )

    def _record(self, status: str, message: str, **extra: object) -> None:
        result: dict[str, object] = {"status": status, "message": message}
        for key, value in extra.items():
            if value is None:
                continue
            result[key] = _json_safe(value)
        self.result = result


class StructuredLogger:
    """Append JSON operation records beneath *log_dir*."""

    def __init__(self, log_dir: Path) -> None:
        """Prepare the log directory, disabling logging when it is unusable."""
        self.log_dir = log_dir.expanduser()
        self._operations_log_path = self.log_dir / OPERATIONS_LOG_NAME
        self._enabled = True
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            self._enabled = False

    @property
    def operations_log_path(self) -> Path:
        """Return the path of the JSON lines file."""
        return self._operations_log_path

    @contextmanager
    def operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Yield an :class:`OperationScope` and persist its record on exit.

        Exceptions escaping the block are recorded as errors (unless the
        scope already holds a result) and then re-raised unchanged.
        """
        scope = OperationScope(command=command, op_id=secrets.token_hex(8))
        started_at = datetime.now(tz=UTC)
        started = time.monotonic()
        try:
            yield scope
        except BaseException as exc:
            if scope.result is None:
                scope.error(str(exc) or type(exc).__name__, errors=[type(exc).__name__])
            raise
        finally:
            if scope.result is None:
                scope.success("Completed.")
            record = {
                "ts": started_at.isoformat(timespec="seconds").replace("+00:00", "Z"),
                "op_id": scope.op_id,
                "command": command,
                "args": _json_safe(dict(args or {})),
                "target": _json_safe(dict(target or {})),
                "steps": scope.steps,
                "result": scope.result,
                "duration_ms": int((time.monotonic() - started) * 1000),
            }
            self._write(record)

    def _write(self, record: Mapping[str, object]) -> None:
        if not self._enabled:
            return
        try:
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record, sort_keys=True) + "\n")
        except OSError:
            self._enabled = False


__all__ = ["OPERATIONS_LOG_NAME", "OperationScope", "StructuredLogger"]
