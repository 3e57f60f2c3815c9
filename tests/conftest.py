"""Shared test fixtures."""

from typing import Any

import pandas as pd
import pytest

from analyst_sandbox.config import SandboxConfig
from analyst_sandbox.core.types import SourceInfo
from analyst_sandbox.query.registry import DuckDBRegistry
from analyst_sandbox.sandbox.engine import CodeExecutor
from analyst_sandbox.state.store import ExecutionContext


class FakeRegistry:
    """Registry double that records queries instead of running them."""

    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        fail_init: bool = False,
        error: Exception | None = None,
    ) -> None:
        self.rows = rows or []
        self.fail_init = fail_init
        self.error = error
        self.initialized = False
        self.calls: list[tuple[str, list[Any]]] = []

    def is_initialized(self) -> bool:
        return self.initialized

    def initialize(self) -> None:
        if self.fail_init:
            raise RuntimeError("engine unavailable")
        self.initialized = True

    def resolve(self, handle: str) -> SourceInfo:
        return SourceInfo(initialized=self.initialized, canonical_table_name=f"csv_{handle}")

    def execute(self, sql: str, params: list[Any] | None = None) -> list[dict]:
        self.calls.append((sql, list(params or [])))
        if self.error is not None:
            raise self.error
        return list(self.rows)


@pytest.fixture
def rows() -> list[dict[str, Any]]:
    """Two in-memory rows."""
    return [{"a": 1}, {"a": 2}]


@pytest.fixture
def team_rows() -> list[dict[str, Any]]:
    """Rows with a team column."""
    return [
        {"team": "A", "points": 3},
        {"team": "B", "points": 1},
        {"team": "A", "points": 2},
    ]


@pytest.fixture
def executor(rows: list[dict[str, Any]]) -> CodeExecutor:
    """Executor bound to two in-memory rows."""
    return CodeExecutor(data=rows)


@pytest.fixture
def context() -> ExecutionContext:
    """Fresh turn context."""
    return ExecutionContext()


@pytest.fixture
def fast_config() -> SandboxConfig:
    """Config with a short timeout and `time` importable."""
    config = SandboxConfig(time_limit=0.2)
    config.allowed_modules.append("time")
    return config


@pytest.fixture
def fake_registry(team_rows: list[dict[str, Any]]) -> FakeRegistry:
    """Registry double returning the team rows."""
    return FakeRegistry(rows=team_rows)


@pytest.fixture
def duckdb_registry(team_rows: list[dict[str, Any]]) -> DuckDBRegistry:
    """Real DuckDB registry with the team rows registered as `matches`."""
    registry = DuckDBRegistry()
    registry.register_frame("matches", pd.DataFrame(team_rows))
    yield registry
    registry.close()


@pytest.fixture
def registry_factory() -> type[FakeRegistry]:
    """Factory for registry doubles with custom behaviour."""
    return FakeRegistry
