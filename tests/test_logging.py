"""Tests for kubemaint.core.logging."""

import json
from pathlib import Path

import pytest

from kubemaint.core.logging import (
    OperationContext,
    configure_logging,
    get_current_context,
    get_current_log_path,
    get_logger,
    narrowed_context,
    with_context,
)


def _read_events(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


@pytest.fixture
def log_file(tmp_path: Path) -> Path:
    path = tmp_path / "logs" / "kubemaint.log"
    configure_logging(level="DEBUG", format="json", file_path=path)
    return path


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_both_requires_file(self):
        with pytest.raises(ValueError, match="file_path"):
            configure_logging(format="both")

    def test_json_to_file(self, log_file: Path):
        get_logger("nodes").info("node.cordoned", node="worker-1")

        events = _read_events(log_file)
        assert events[-1]["event"] == "node.cordoned"
        assert events[-1]["component"] == "nodes"
        assert events[-1]["level"] == "info"
        assert "timestamp" in events[-1]
        assert get_current_log_path() == log_file

    def test_both_writes_json_to_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]):
        path = tmp_path / "both.log"
        configure_logging(level="INFO", format="both", file_path=path)

        get_logger("nodes").info("node.drained", node="worker-1")

        event = _read_events(path)[-1]
        assert (event["event"], event["node"]) == ("node.drained", "worker-1")
        assert "node.drained" in capsys.readouterr().err

    def test_level_filtering(self, tmp_path: Path):
        path = tmp_path / "warn.log"
        configure_logging(level="WARNING", format="json", file_path=path)
        logger = get_logger("nodes")
        logger.info("hidden")
        logger.warning("shown")
        assert [event["event"] for event in _read_events(path)] == ["shown"]

    def test_without_timestamps(self, tmp_path: Path):
        path = tmp_path / "plain.log"
        configure_logging(format="json", file_path=path, include_timestamps=False)
        get_logger("x").info("event")
        assert "timestamp" not in _read_events(path)[0]


class TestSanitization:
    """Tests for redaction of sensitive fields."""

    def test_sensitive_keys_redacted(self, log_file: Path):
        get_logger("auth").info("login", token="abc123", client_key="pem", node="worker-1")

        event = _read_events(log_file)[-1]
        assert event["token"] == "[REDACTED]"
        assert event["client_key"] == "[REDACTED]"
        assert event["node"] == "worker-1"

    def test_nested_dict_redacted(self, log_file: Path):
        get_logger("auth").info("kubeconfig", user={"name": "admin", "password": "hunter2"})
        assert _read_events(log_file)[-1]["user"] == {"name": "admin", "password": "[REDACTED]"}

    def test_dicts_inside_lists_redacted(self, log_file: Path):
        get_logger("auth").info("contexts", users=[{"name": "ci", "token": "t0k"}])
        assert _read_events(log_file)[-1]["users"] == [{"name": "ci", "token": "[REDACTED]"}]


class TestOperationContext:
    """Tests for context propagation into log lines."""

    def test_context_fields_added(self, log_file: Path):
        ctx = OperationContext(command="drain", node="worker-1")
        with with_context(ctx):
            get_logger("nodes").info("drain.started")

        event = _read_events(log_file)[-1]
        assert event["command"] == "drain"
        assert event["node"] == "worker-1"
        assert event["run_id"] == ctx.run_id

    def test_explicit_keys_win(self, log_file: Path):
        with with_context(OperationContext(command="drain", node="worker-1")):
            get_logger("nodes").info("pod.evicted", node="worker-2")
        assert _read_events(log_file)[-1]["node"] == "worker-2"

    def test_context_reset_after_block(self):
        with with_context(OperationContext(command="check")):
            assert get_current_context() is not None
        assert get_current_context() is None

    def test_narrowed_context(self, log_file: Path):
        with with_context(OperationContext(command="drain")):
            with narrowed_context(node="worker-1", operation="node cordon"):
                get_logger("kubectl").info("kubectl.completed")
            get_logger("nodes").info("nodes.drained")

        narrowed, outer = _read_events(log_file)[-2:]
        assert (narrowed["node"], narrowed["operation"]) == ("worker-1", "node cordon")
        assert "node" not in outer

    def test_narrowed_context_outside_command(self):
        with narrowed_context(node="worker-1") as ctx:
            assert ctx is None
            assert get_current_context() is None

    def test_copies(self):
        ctx = OperationContext(command="drain")
        derived = ctx.with_node("worker-1").with_operation("node cordon")
        assert derived.run_id == ctx.run_id
        assert derived.to_dict() == {
            "command": "drain",
            "run_id": ctx.run_id,
            "node": "worker-1",
            "operation": "node cordon",
        }
        assert "node" not in ctx.to_dict()


class TestKubemaintLogger:
    """Tests for the component logger wrapper."""

    def test_bind_adds_context(self, log_file: Path):
        logger = get_logger("nodes", cluster="prod").bind(node="worker-1")
        logger.warning("node.pressure")
        event = _read_events(log_file)[-1]
        assert (event["cluster"], event["node"], event["level"]) == ("prod", "worker-1", "warning")

    def test_import_time_logger_honors_later_configuration(self, tmp_path: Path):
        logger = get_logger("early")
        path = tmp_path / "late.log"
        configure_logging(format="json", file_path=path)
        logger.error("late.configured")
        assert _read_events(path)[-1]["event"] == "late.configured"
