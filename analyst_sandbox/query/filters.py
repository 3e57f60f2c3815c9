"""Filter-aware construction of declarative queries.

Active column filters are merged into an arbitrary SELECT statement as bound
parameters. Values are never interpolated into the query text.
"""

import re
from typing import Any

from ..core.types import FilterSet

NULL_SENTINEL = "(null)"
SELECT_ALL_SENTINEL = "__SELECT_ALL__"

# Clauses a new WHERE must be placed in front of
_TRAILING_CLAUSE = r"\s+(?:ORDER\s+BY|GROUP\s+BY|LIMIT|HAVING)\s+"
_TRAILING_CLAUSE_RE = re.compile(_TRAILING_CLAUSE, re.IGNORECASE)
_EXISTING_WHERE_RE = re.compile(
    r"\bWHERE\s+(.+?)(" + _TRAILING_CLAUSE + r"|$)", re.IGNORECASE | re.DOTALL
)
_HAS_WHERE_RE = re.compile(r"\bWHERE\s+", re.IGNORECASE)
_HAS_FROM_RE = re.compile(r"\bFROM\s+", re.IGNORECASE)
_HAS_SELECT_RE = re.compile(r"\bSELECT\s+", re.IGNORECASE)

# Placeholder names authors commonly use for "the uploaded table"
_TABLE_PLACEHOLDER_RE = re.compile(
    r"\b(FROM|JOIN|DESCRIBE|INTO|UPDATE|TABLE)\s+(?:csvData|csv_data|csvdata|data)\b",
    re.IGNORECASE,
)


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, escaping embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def substitute_table_placeholders(sql: str, table_name: str) -> str:
    """Replace placeholder table names in FROM/JOIN-like positions."""
    quoted = quote_identifier(table_name)
    return _TABLE_PLACEHOLDER_RE.sub(lambda m: f"{m.group(1)} {quoted}", sql)


def build_filter_conditions(
    filters: FilterSet | None,
    null_sentinel: str = NULL_SENTINEL,
    select_all: str = SELECT_ALL_SENTINEL,
) -> tuple[list[str], list[Any]]:
    """
    Build WHERE fragments and their bound parameters for a filter set.

    Args:
        filters: Active filter set (columns and their selected values)
        null_sentinel: Value that stands for SQL NULL
        select_all: Value that disables filtering for a column

    Returns:
        Tuple of (condition fragments, parameters in placeholder order)
    """
    if filters is None or filters.is_empty():
        return [], []

    conditions: list[str] = []
    params: list[Any] = []

    for column in filters.columns:
        value = filters.values.get(column)
        if value is None or value == "" or value == select_all:
            continue
        if isinstance(value, (list, tuple)) and (not value or select_all in value):
            continue

        col = quote_identifier(column)

        if isinstance(value, (list, tuple)):
            has_null = any(str(v) == null_sentinel for v in value)
            real_values = [v for v in value if str(v) != null_sentinel]
            placeholders = ", ".join("?" for _ in real_values)

            if has_null and real_values:
                conditions.append(f"({col} IN ({placeholders}) OR {col} IS NULL)")
                params.extend(real_values)
            elif has_null:
                conditions.append(f"{col} IS NULL")
            else:
                conditions.append(f"{col} IN ({placeholders})")
                params.extend(real_values)
        elif str(value) == null_sentinel:
            conditions.append(f"{col} IS NULL")
        else:
            conditions.append(f"{col} = ?")
            params.append(value)

    return conditions, params


def apply_filters(
    sql: str,
    table_name: str,
    filters: FilterSet | None = None,
    null_sentinel: str = NULL_SENTINEL,
    select_all: str = SELECT_ALL_SENTINEL,
) -> tuple[str, list[Any]]:
    """
    Merge active filters into a declarative query.

    An existing WHERE clause becomes `WHERE (filters) AND (existing)`. Without
    one, a new WHERE is inserted in front of the first ORDER BY / GROUP BY /
    LIMIT / HAVING, or appended. A query with no FROM gets the table appended.

    Args:
        sql: Query text written by the script author
        table_name: Canonical table name for the bound source
        filters: Active filter set
        null_sentinel: Value that stands for SQL NULL
        select_all: Value that disables filtering for a column

    Returns:
        Tuple of (final query text, bound parameters)
    """
    final_sql = sql.strip().rstrip(";").rstrip()
    conditions, params = build_filter_conditions(filters, null_sentinel, select_all)

    if not conditions:
        if not _HAS_FROM_RE.search(final_sql) and _HAS_SELECT_RE.search(final_sql):
            final_sql += f" FROM {quote_identifier(table_name)}"
        return final_sql, params

    joined = " AND ".join(conditions)

    if _HAS_WHERE_RE.search(final_sql):
        final_sql = _EXISTING_WHERE_RE.sub(
            lambda m: f"WHERE ({joined}) AND ({m.group(1).strip()}){m.group(2)}",
            final_sql,
            count=1,
        )
        return final_sql, params

    if not _HAS_FROM_RE.search(final_sql):
        final_sql += f" FROM {quote_identifier(table_name)}"

    clause = _TRAILING_CLAUSE_RE.search(final_sql)
    if clause:
        pos = clause.start()
        final_sql = f"{final_sql[:pos]} WHERE {joined}{final_sql[pos:]}"
    else:
        final_sql += f" WHERE {joined}"

    return final_sql, params
