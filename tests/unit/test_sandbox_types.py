"""Tests for configuration and result types."""

import math

import pandas as pd

from analyst_sandbox.config import SandboxConfig
from analyst_sandbox.core.serialize import dumps_result, to_jsonable
from analyst_sandbox.core.types import (
    ErrorKind,
    ExecutionResult,
    FilterSet,
    DelimiterKind,
    ScriptBlock,
)


class TestSandboxConfig:
    """Tests for SandboxConfig."""

    def test_default_config(self) -> None:
        """Test default SandboxConfig values."""
        config = SandboxConfig()

        assert config.time_limit == 30.0
        assert "math" in config.allowed_modules
        assert "pandas" in config.allowed_modules
        assert config.max_output_length == 10 * 1024
        assert config.min_block_length == 10
        assert config.max_manual_code_length == 50_000
        assert config.null_sentinel == "(null)"
        assert config.select_all_sentinel == "__SELECT_ALL__"
        assert config.bracket_tolerance == 5

    def test_to_dict_and_from_dict(self) -> None:
        """Test serialization round trip."""
        config = SandboxConfig(time_limit=45.0, allowed_modules=["math"])

        restored = SandboxConfig.from_dict(config.to_dict())

        assert restored == config
        assert restored.allowed_modules is not config.allowed_modules

    def test_from_env(self, monkeypatch) -> None:
        """Test environment overrides."""
        monkeypatch.setenv("SANDBOX_TIME_LIMIT", "5")
        monkeypatch.setenv("SANDBOX_ALLOWED_MODULES", "math, json")
        monkeypatch.setenv("SANDBOX_DEFAULT_SQL_TABLE", "events")

        config = SandboxConfig.from_env()

        assert config.time_limit == 5.0
        assert config.allowed_modules == ["math", "json"]
        assert config.default_sql_table == "events"


class TestExecutionResult:
    """Tests for ExecutionResult."""

    def test_success_result(self) -> None:
        """Test creating a successful result."""
        result = ExecutionResult.success_result(2, elapsed_ms=5, stdout="hi\n")

        assert result.success
        assert not result.failed
        assert result.value == 2
        assert result.error is None
        assert result.error_message is None

    def test_error_result(self) -> None:
        """Test creating an error result."""
        result = ExecutionResult.error_result(
            ErrorKind.QUERY, "bad query", {"query": "SELECT"}
        )

        assert result.failed
        assert result.error.kind is ErrorKind.QUERY
        assert result.error_message == "bad query"
        assert result.to_dict()["error"] == {
            "kind": "query",
            "message": "bad query",
            "details": {"query": "SELECT"},
        }

    def test_timeout_result(self) -> None:
        """Test creating a timeout result."""
        result = ExecutionResult.timeout_result(30.0)

        assert result.failed
        assert result.error.kind is ErrorKind.TIMEOUT
        assert "30 seconds" in result.error_message


class TestScriptBlock:
    """Tests for ScriptBlock."""

    def test_overlaps(self) -> None:
        """Test overlap detection between blocks."""
        a = ScriptBlock("x", DelimiterKind.FENCED, "python", 0, 10)
        b = ScriptBlock("y", DelimiterKind.TAGGED, "execute", 5, 20)
        c = ScriptBlock("z", DelimiterKind.FENCED, None, 10, 15)

        assert a.overlaps(b)
        assert not a.overlaps(c)


class TestFilterSet:
    """Tests for FilterSet."""

    def test_from_dict(self) -> None:
        filters = FilterSet.from_dict({"team": "A", "season": ["2023", "2024"]})

        assert filters.columns == ["team", "season"]
        assert not filters.is_empty()
        assert FilterSet().is_empty()


class TestSerialize:
    """Tests for result serialization."""

    def test_dataframe(self) -> None:
        """Test DataFrames become lists of records."""
        df = pd.DataFrame({"a": [1, 2]})

        assert to_jsonable(df) == [{"a": 1}, {"a": 2}]

    def test_nested_values(self) -> None:
        """Test nested containers and non-finite floats."""
        value = {"xs": (1, 2), "nan": math.nan, 3: "three"}

        assert to_jsonable(value) == {"xs": [1, 2], "nan": None, "3": "three"}

    def test_dumps_result(self) -> None:
        assert dumps_result({"total": 2}) == '{\n  "total": 2\n}'
