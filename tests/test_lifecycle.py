"""Tests for kubemaint.execution.lifecycle."""

import os
import signal
from pathlib import Path

import pytest

from kubemaint.core.errors import (
    INTERRUPTED_EXIT_CODE,
    AuthError,
    ErrorKind,
    OperationInterrupted,
    ResourceNotFoundError,
)
from kubemaint.execution.lifecycle import (
    CommandRunner,
    failure_location,
    interrupt_handlers,
    validate_error_handling,
)
from kubemaint.execution.supervisor import ResilienceContext


def _raise(exc: BaseException) -> None:
    raise exc


class TestCommandRunner:
    """Tests for the exit paths of CommandRunner.run()."""

    def test_success_returns_zero_and_discards_rollback(self, context):
        undone: list[str] = []

        def command() -> None:
            context.rollback.push(lambda: undone.append("uncordon"), "Uncordon node x")

        assert CommandRunner(context).run("cordon", command) == 0
        assert undone == []
        assert len(context.rollback) == 0

    def test_passes_arguments(self, context):
        seen: list[tuple] = []
        CommandRunner(context).run("drain", lambda *a, **kw: seen.append((a, kw)), "x", force=True)
        assert seen == [(("x",), {"force": True})]

    def test_classified_failure_returns_kind_exit_code(self, context):
        code = CommandRunner(context).run("drain", _raise, ResourceNotFoundError("node x"))
        assert code == ErrorKind.NOT_FOUND.exit_code

    def test_failure_runs_rollback(self, context):
        undone: list[str] = []

        def command() -> None:
            context.rollback.push(lambda: undone.append("first"), "first")
            context.rollback.push(lambda: undone.append("second"), "second")
            raise AuthError("Unauthorized")

        assert CommandRunner(context).run("drain", command) == 4
        assert undone == ["second", "first"]
        assert len(context.rollback) == 0

    def test_unclassified_failure_is_general(self, context):
        assert CommandRunner(context).run("drain", _raise, RuntimeError("boom")) == 1

    def test_failing_rollback_action_does_not_change_exit_code(self, context):
        def command() -> None:
            context.rollback.push(lambda: _raise(RuntimeError("uncordon failed")), "Uncordon")
            raise AuthError("Unauthorized")

        assert CommandRunner(context).run("drain", command) == 4
        assert len(context.rollback) == 0

    def test_keyboard_interrupt_returns_130(self, context):
        undone: list[str] = []

        def command() -> None:
            context.rollback.push(lambda: undone.append("uncordon"), "Uncordon node x")
            raise KeyboardInterrupt

        assert CommandRunner(context).run("drain", command) == INTERRUPTED_EXIT_CODE
        assert undone == ["uncordon"]

    def test_signal_interrupt_returns_130(self, context):
        code = CommandRunner(context).run(
            "drain", _raise, OperationInterrupted(signal.SIGTERM)
        )
        assert code == INTERRUPTED_EXIT_CODE

    def test_temp_resources_cleaned_on_every_path(self, context):
        created: list[Path] = []

        def command(fail: bool) -> None:
            created.append(context.temp.make_temp_dir())
            if fail:
                raise AuthError("Unauthorized")

        runner = CommandRunner(context)
        runner.run("drain", command, False)
        runner.run("drain", command, True)

        assert all(not path.exists() for path in created)
        assert context.temp.tracked == 0

    def test_run_has_workdir_with_pid_file(self, context):
        runner = CommandRunner(context)
        seen: list[tuple[Path, str]] = []

        def command() -> None:
            assert runner.workdir is not None
            pid_file = runner.workdir / "kubemaint.pid"
            seen.append((runner.workdir, pid_file.read_text().strip()))

        assert runner.run("drain", command) == 0

        workdir, pid = seen[0]
        assert workdir.name.startswith(f"kubemaint-{os.getpid()}-")
        assert pid == str(os.getpid())
        assert not workdir.exists()
        assert runner.workdir is None

    def test_workdir_removed_after_failure(self, context):
        runner = CommandRunner(context)
        workdirs: list[Path] = []

        def command() -> None:
            assert runner.workdir is not None
            workdirs.append(runner.workdir)
            raise AuthError("Unauthorized")

        assert runner.run("drain", command) == 4
        assert not workdirs[0].exists()
        assert context.temp.tracked == 0

    def test_initializes_context(self):
        ctx = ResilienceContext.from_config()
        CommandRunner(ctx).run("check", lambda: None)
        assert ctx.initialized

    def test_prints_error_to_console(self, context):
        from rich.console import Console

        console = Console(record=True, width=120)
        CommandRunner(context, console=console).run("drain", _raise, AuthError("Unauthorized"))
        assert "Unauthorized" in console.export_text()


class TestFailureLocation:
    """Tests for failure_location()."""

    def test_points_at_raising_line(self):
        try:
            _raise(ValueError("x"))
        except ValueError as e:
            location = failure_location(e)
        assert "test_lifecycle.py" in location
        assert location.rsplit(":", 1)[1].isdigit()

    def test_unraised_exception(self):
        assert failure_location(ValueError("x")) == "unknown"


class TestInterruptHandlers:
    """Tests for interrupt_handlers()."""

    def test_restores_previous_handler(self):
        before = signal.getsignal(signal.SIGTERM)
        with interrupt_handlers():
            assert signal.getsignal(signal.SIGTERM) is not before
        assert signal.getsignal(signal.SIGTERM) is before

    def test_sigterm_raises_operation_interrupted(self):
        with pytest.raises(OperationInterrupted) as exc_info:
            with interrupt_handlers():
                signal.raise_signal(signal.SIGTERM)
        assert exc_info.value.signum == signal.SIGTERM


class TestValidateErrorHandling:
    """Tests for validate_error_handling()."""

    def test_clean_context(self, context):
        assert validate_error_handling(context, which=lambda name: f"/usr/bin/{name}") == []

    def test_reports_issues(self):
        ctx = ResilienceContext.from_config()
        ctx.rollback.push(lambda: None, "leftover")

        issues = validate_error_handling(ctx, which=lambda name: None)

        assert len(issues) == 3
        assert any("kubectl" in issue for issue in issues)
