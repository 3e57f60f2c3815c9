"""Tests for the state store and execution context."""

import pytest

from analyst_sandbox.state.store import ExecutionContext, StateStore, is_persistable_name


class TestStateStore:
    """Tests for StateStore."""

    def test_persist_scalar(self) -> None:
        """Test a non-mapping result is stored only under the result key."""
        store = StateStore()

        written = store.persist_result([1, 2, 3])

        assert written == ["result"]
        assert store.get("result") == [1, 2, 3]
        assert store.keys() == ["result"]

    def test_persist_mapping(self) -> None:
        """Test mapping keys become individual names."""
        store = StateStore()

        store.persist_result({"total": 2, "teams": ["A"]})

        assert store.get("result") == {"total": 2, "teams": ["A"]}
        assert store.get("total") == 2
        assert store.get("teams") == ["A"]

    def test_skips_unsafe_keys(self) -> None:
        """Test invalid and dangerous keys are not exposed as names."""
        store = StateStore()

        store.persist_result(
            {"ok": 1, "bad key": 2, "__class__": 3, "class": 4, "constructor": 5, 7: 6}
        )

        assert store.keys() == ["result", "ok"]

    def test_skips_builtin_names(self) -> None:
        """Test keys named like builtins stay reachable only through the result."""
        store = StateStore()

        store.persist_result({"sum": 3, "max": 2, "total": 5})

        assert store.keys() == ["result", "total"]
        assert store.get("result") == {"sum": 3, "max": 2, "total": 5}

    def test_explicit_result_key(self) -> None:
        store = StateStore()

        written = store.persist_result(5, "answer")

        assert written == ["answer"]
        assert store.get("answer") == 5
        assert "result" not in store.keys()

    def test_later_results_overwrite(self) -> None:
        store = StateStore()
        store.persist_result({"x": 1})
        store.persist_result({"x": 2, "y": 3})

        assert store.get("x") == 2
        assert store.get("y") == 3

    def test_snapshot_is_read_only(self) -> None:
        store = StateStore()
        store.persist_result({"x": 1})

        snapshot = store.snapshot()

        with pytest.raises(TypeError):
            snapshot["x"] = 2  # type: ignore[index]
        store.clear()
        assert snapshot["x"] == 1
        assert len(store) == 0


class TestIsPersistableName:
    @pytest.mark.parametrize("name", ["x", "total_2", "_hidden"])
    def test_valid(self, name: str) -> None:
        assert is_persistable_name(name)

    @pytest.mark.parametrize(
        "name", ["2x", "a-b", "for", "__proto__", "prototype", "__x__", "", "sum", "len", "list"]
    )
    def test_invalid(self, name: str) -> None:
        assert not is_persistable_name(name)


class TestExecutionContext:
    """Tests for ExecutionContext."""

    def test_contexts_are_isolated(self) -> None:
        a = ExecutionContext()
        b = ExecutionContext()
        a.state.persist_result({"x": 1})

        assert a.turn_id != b.turn_id
        assert "x" not in b.state

    def test_cancel_clears_state(self) -> None:
        ctx = ExecutionContext()
        ctx.state.persist_result({"x": 1})

        ctx.cancel()

        assert ctx.cancelled
        assert len(ctx.state) == 0

    def test_complete_clears_state(self) -> None:
        ctx = ExecutionContext()
        ctx.state.persist_result(5)

        ctx.complete()

        assert not ctx.cancelled
        assert ctx.state.keys() == []
