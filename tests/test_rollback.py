"""Tests for kubemaint.execution.rollback module."""

from kubemaint.execution.rollback import RollbackStack


class TestRollbackStack:
    """Tests for push/execute_all/clear."""

    def test_executes_in_reverse_order(self):
        stack = RollbackStack()
        order: list[int] = []
        for i in range(5):
            stack.push(lambda i=i: order.append(i), f"action {i}")

        report = stack.execute_all()

        assert order == [4, 3, 2, 1, 0]
        assert report.executed == [f"action {i}" for i in (4, 3, 2, 1, 0)]
        assert report.ok
        assert len(stack) == 0

    def test_second_execute_is_noop(self):
        stack = RollbackStack()
        calls: list[str] = []
        stack.push(lambda: calls.append("uncordon"), "Uncordon node x")
        stack.execute_all()
        report = stack.execute_all()
        assert calls == ["uncordon"]
        assert report.total == 0

    def test_clear_runs_nothing(self):
        stack = RollbackStack()
        calls: list[int] = []
        for i in range(3):
            stack.push(lambda i=i: calls.append(i), f"action {i}")
        stack.clear()
        assert calls == []
        assert len(stack) == 0
        assert stack.execute_all().total == 0

    def test_failure_does_not_stop_later_actions(self):
        stack = RollbackStack()
        calls: list[str] = []

        def broken() -> None:
            raise RuntimeError("kubectl unavailable")

        stack.push(lambda: calls.append("first"), "first")
        stack.push(broken, "broken")
        stack.push(lambda: calls.append("last"), "last")

        report = stack.execute_all()

        assert calls == ["last", "first"]
        assert report.failed == ["broken"]
        assert report.executed == ["last", "first"]
        assert not report.ok
        assert len(stack) == 0

    def test_pending_lists_run_order(self):
        stack = RollbackStack()
        stack.push(lambda: None, "a")
        stack.push(lambda: None, "b")
        assert stack.pending() == ["b", "a"]

    def test_release_discards_only_newer_entries(self):
        stack = RollbackStack()
        calls: list[str] = []
        stack.push(lambda: calls.append("outer"), "outer")
        mark = stack.mark()
        stack.push(lambda: calls.append("inner"), "inner")
        stack.release(mark)
        assert stack.pending() == ["outer"]
        stack.execute_all()
        assert calls == ["outer"]
