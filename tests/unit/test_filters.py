"""Tests for filter-aware query construction."""

from analyst_sandbox.core.types import FilterSet
from analyst_sandbox.query.filters import (
    apply_filters,
    build_filter_conditions,
    quote_identifier,
    substitute_table_placeholders,
)


class TestBuildFilterConditions:
    """Tests for WHERE fragment generation."""

    def test_single_value(self) -> None:
        conditions, params = build_filter_conditions(FilterSet.from_dict({"team": "A"}))

        assert conditions == ['"team" = ?']
        assert params == ["A"]

    def test_list_values(self) -> None:
        conditions, params = build_filter_conditions(
            FilterSet.from_dict({"team": ["A", "B"]})
        )

        assert conditions == ['"team" IN (?, ?)']
        assert params == ["A", "B"]

    def test_null_mixed_with_values(self) -> None:
        """Test the null sentinel is split out of the IN list."""
        conditions, params = build_filter_conditions(
            FilterSet.from_dict({"team": ["A", "(null)"]})
        )

        assert conditions == ['("team" IN (?) OR "team" IS NULL)']
        assert params == ["A"]

    def test_null_only(self) -> None:
        conditions, params = build_filter_conditions(
            FilterSet.from_dict({"team": ["(null)"], "season": "(null)"})
        )

        assert conditions == ['"team" IS NULL', '"season" IS NULL']
        assert params == []

    def test_skipped_values(self) -> None:
        """Test empty, missing and select-all values produce no condition."""
        filters = FilterSet(
            columns=["a", "b", "c", "d", "e"],
            values={"a": None, "b": "", "c": "__SELECT_ALL__", "d": []},
        )

        assert build_filter_conditions(filters) == ([], [])

    def test_quoted_column(self) -> None:
        conditions, _ = build_filter_conditions(FilterSet.from_dict({'we"ird': 1}))

        assert conditions == ['"we""ird" = ?']


class TestApplyFilters:
    """Tests for merging filters into a query."""

    FILTERS = FilterSet.from_dict({"team": "A"})

    def test_no_filters_keeps_query(self) -> None:
        sql, params = apply_filters("SELECT * FROM t;", "t")

        assert sql == "SELECT * FROM t"
        assert params == []

    def test_no_filters_adds_missing_from(self) -> None:
        sql, _ = apply_filters("SELECT COUNT(*)", "t")

        assert sql == 'SELECT COUNT(*) FROM "t"'

    def test_appends_where(self) -> None:
        sql, params = apply_filters("SELECT * FROM t", "t", self.FILTERS)

        assert sql == 'SELECT * FROM t WHERE "team" = ?'
        assert params == ["A"]

    def test_existing_where_is_wrapped(self) -> None:
        """Test filters are AND-ed in front of an existing WHERE clause."""
        sql, _ = apply_filters(
            "SELECT * FROM t WHERE points > 1 ORDER BY points", "t", self.FILTERS
        )

        assert sql == 'SELECT * FROM t WHERE ("team" = ?) AND (points > 1) ORDER BY points'

    def test_existing_where_at_end(self) -> None:
        sql, _ = apply_filters("SELECT * FROM t WHERE points > 1", "t", self.FILTERS)

        assert sql == 'SELECT * FROM t WHERE ("team" = ?) AND (points > 1)'

    def test_where_inserted_before_group_by(self) -> None:
        sql, _ = apply_filters(
            "SELECT team, COUNT(*) FROM t GROUP BY team", "t", self.FILTERS
        )

        assert sql == 'SELECT team, COUNT(*) FROM t WHERE "team" = ? GROUP BY team'

    def test_where_inserted_before_limit(self) -> None:
        sql, _ = apply_filters("SELECT * FROM t LIMIT 5", "t", self.FILTERS)

        assert sql == 'SELECT * FROM t WHERE "team" = ? LIMIT 5'

    def test_missing_from_with_filters(self) -> None:
        sql, _ = apply_filters("SELECT COUNT(*)", "t", self.FILTERS)

        assert sql == 'SELECT COUNT(*) FROM "t" WHERE "team" = ?'


class TestTablePlaceholders:
    def test_quote_identifier(self) -> None:
        assert quote_identifier("csv_1") == '"csv_1"'

    def test_substitutes_placeholder_positions(self) -> None:
        sql = substitute_table_placeholders(
            "SELECT data_id FROM data JOIN csvData USING (id)", "csv_1"
        )

        assert sql == 'SELECT data_id FROM "csv_1" JOIN "csv_1" USING (id)'
