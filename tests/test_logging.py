"""Tests for the JSON-lines operation log."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from neo4jctl.logging import StructuredLogger
from neo4jctl.providers import StopOutcome


def _records(logger: StructuredLogger) -> list[dict[str, object]]:
    text = logger.operations_log_path.read_text(encoding="utf-8")
    return [json.loads(line) for line in text.splitlines()]


def test_logs_dir_occupied_by_file_keeps_commands_running(tmp_path: Path) -> None:
    """An unusable logs directory silences the log instead of failing commands."""
    blocker = tmp_path / "logs"
    blocker.write_text("not a directory", encoding="utf-8")

    logger = StructuredLogger(blocker)
    with logger.operation("start", args={"wait": True}) as op:
        op.success("Server started.", changed=1, context={"pid": 4242})

    assert blocker.read_text(encoding="utf-8") == "not a directory"


def test_unwritable_log_file_stops_further_writes(tmp_path: Path) -> None:
    """After one failed append the logger no longer touches the log file."""
    logger = StructuredLogger(tmp_path / "logs")
    logger.operations_log_path.mkdir()

    with logger.operation("install", args={"edition": "community-latest"}):
        pass
    with logger.operation("stop", args={"timeout": None}):
        pass

    assert logger.operations_log_path.is_dir()
    assert list(logger.operations_log_path.iterdir()) == []


def test_operation_records_steps_and_target(tmp_path: Path) -> None:
    """Records carry the command, target and ordered steps."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation(
        "install",
        args={"edition": "community-latest"},
        target={"path": tmp_path / "neo4j"},
    ) as op:
        op.add_step("version.resolve", detail={"version": "community-3.0.1"})
        op.add_step("archive.download", status="skipped")

    (record,) = _records(logger)
    assert record["command"] == "install"
    assert record["args"] == {"edition": "community-latest"}
    assert record["target"] == {"path": str(tmp_path / "neo4j")}
    assert record["steps"] == [
        {
            "name": "version.resolve",
            "status": "success",
            "detail": {"version": "community-3.0.1"},
        },
        {"name": "archive.download", "status": "skipped"},
    ]
    assert record["result"] == {"status": "success", "message": "Completed."}


def test_operation_records_escaping_exception(tmp_path: Path) -> None:
    """Exceptions are logged as errors and re-raised."""
    logger = StructuredLogger(tmp_path / "logs")

    with pytest.raises(ValueError, match="bad port"):
        with logger.operation("set-port"):
            raise ValueError("bad port")

    (record,) = _records(logger)
    assert record["result"] == {
        "status": "error",
        "message": "bad port",
        "errors": ["ValueError"],
    }


def test_stop_timeout_warning_record(tmp_path: Path) -> None:
    """A killed server is logged as a warning whose message doubles as the warning."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation("stop", args={"timeout": 0.5}) as op:
        op.warning(
            "Graceful shutdown timed out.",
            changed=1,
            context={"outcome": StopOutcome.KILLED.value},
        )

    (record,) = _records(logger)
    assert record["args"] == {"timeout": 0.5}
    assert record["result"] == {
        "status": "warning",
        "message": "Graceful shutdown timed out.",
        "warnings": ["Graceful shutdown timed out."],
        "errors": [],
        "changed": 1,
        "context": {"outcome": "killed"},
    }


def test_reset_record_lists_removed_paths(tmp_path: Path) -> None:
    """Paths removed by a reset are stored as strings."""
    logger = StructuredLogger(tmp_path / "logs")
    removed = [tmp_path / "data" / "graph.db" / "neostore", tmp_path / "data" / "log" / "a.log"]

    with logger.operation("reset") as op:
        op.success("Server reset.", changed=len(removed), context={"removed": removed})

    (record,) = _records(logger)
    assert record["result"] == {
        "status": "success",
        "message": "Server reset.",
        "changed": 2,
        "context": {"removed": [str(path) for path in removed]},
    }


def test_rejected_password_change_record(tmp_path: Path) -> None:
    """A server-side rejection is an error carrying its own message."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation("change-password", target={"username": "neo4j"}) as op:
        op.error("Invalid username or password.", context={"address": "http://db:7474"})

    (record,) = _records(logger)
    assert record["target"] == {"username": "neo4j"}
    assert record["result"] == {
        "status": "error",
        "message": "Invalid username or password.",
        "errors": ["Invalid username or password."],
        "context": {"address": "http://db:7474"},
    }
