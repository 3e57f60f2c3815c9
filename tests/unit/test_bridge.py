"""Tests for the query() bridge."""

import pytest

from analyst_sandbox.core.errors import DataSourceMissingError, QueryError
from analyst_sandbox.core.types import FilterSet
from analyst_sandbox.query.bridge import QueryBridge
from analyst_sandbox.query.registry import canonical_table_name


class TestQueryBridge:
    """Tests for QueryBridge."""

    def test_substitutes_alias_and_initializes(self, fake_registry) -> None:
        """Test the alias is replaced and the registry is started lazily."""
        bridge = QueryBridge(fake_registry, ["m1"])

        rows = bridge("SELECT * FROM CSV_DATA")

        assert fake_registry.initialized
        assert fake_registry.calls == [('SELECT * FROM "csv_m1"', [])]
        assert rows == fake_registry.rows

    def test_alias_is_whole_word(self, fake_registry) -> None:
        bridge = QueryBridge(fake_registry, ["m1"])

        bridge("SELECT csv_data_id FROM csv_data")

        assert fake_registry.calls[0][0] == 'SELECT csv_data_id FROM "csv_m1"'

    def test_applies_filters(self, fake_registry) -> None:
        bridge = QueryBridge(
            fake_registry, ["m1"], filters=FilterSet.from_dict({"team": ["A", "(null)"]})
        )

        bridge("SELECT * FROM csv_data")

        assert fake_registry.calls == [
            ('SELECT * FROM "csv_m1" WHERE ("team" IN (?) OR "team" IS NULL)', ["A"])
        ]

    def test_missing_handle_with_in_memory_rows(self, registry_factory) -> None:
        """Test guidance towards list operations when rows are in memory."""
        bridge = QueryBridge(registry_factory(), [], in_memory_rows=3)

        with pytest.raises(DataSourceMissingError, match=r"in-memory data \(3 rows\)"):
            bridge("SELECT 1")

    def test_missing_handle_without_rows(self) -> None:
        bridge = QueryBridge(None, ["m1"])

        with pytest.raises(DataSourceMissingError, match="No data source registered"):
            bridge("SELECT 1")

    def test_engine_error_is_wrapped(self, registry_factory) -> None:
        """Test engine errors keep their message and carry the final query."""
        registry = registry_factory(
            error=RuntimeError('Binder Error: column "nope" not found')
        )
        bridge = QueryBridge(registry, ["m1"])

        with pytest.raises(QueryError) as exc_info:
            bridge("SELECT nope FROM csv_data")

        assert exc_info.value.message == 'Binder Error: column "nope" not found'
        assert exc_info.value.query == 'SELECT nope FROM "csv_m1"'
        assert exc_info.value.details == {"query": 'SELECT nope FROM "csv_m1"'}


class TestCanonicalTableName:
    def test_sanitizes_handle(self) -> None:
        assert canonical_table_name("file-1.csv") == "csv_file_1_csv"
