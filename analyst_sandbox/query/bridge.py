"""The `query()` callable exposed to scripts."""

import logging
import re
from collections.abc import Sequence

from ..core.errors import DataSourceMissingError, QueryError
from ..core.protocols import DataSourceRegistry
from ..core.types import FilterSet
from .filters import (
    NULL_SENTINEL,
    SELECT_ALL_SENTINEL,
    apply_filters,
    quote_identifier,
    substitute_table_placeholders,
)

logger = logging.getLogger(__name__)


class QueryBridge:
    """
    Callable that lets a script run declarative queries against registered data.

    Bound per execution to the source handles, the active filter set and the
    number of in-memory rows (used only to produce a better error message when
    no handle is bound).
    """

    def __init__(
        self,
        registry: DataSourceRegistry | None,
        source_handles: Sequence[str] = (),
        filters: FilterSet | None = None,
        in_memory_rows: int = 0,
        alias: str = "csv_data",
        null_sentinel: str = NULL_SENTINEL,
        select_all: str = SELECT_ALL_SENTINEL,
    ):
        self.registry = registry
        self.source_handles = list(source_handles)
        self.filters = filters
        self.in_memory_rows = in_memory_rows
        self.null_sentinel = null_sentinel
        self.select_all = select_all
        self._alias_re = re.compile(rf"\b{re.escape(alias)}\b", re.IGNORECASE)

    def __call__(self, sql: str) -> list[dict]:
        """
        Run a query against the first bound source.

        Args:
            sql: Query text; the alias table name is replaced with the real one

        Returns:
            Result rows as dicts

        Raises:
            DataSourceMissingError: If no source handle is bound
            QueryError: If the engine rejects the query
        """
        if not self.source_handles or self.registry is None:
            if self.in_memory_rows > 0:
                raise DataSourceMissingError(
                    "query() is for registered tables, but you have in-memory data "
                    f"({self.in_memory_rows} rows). Use list operations instead, e.g.\n\n"
                    'rows = [row for row in data if row["column"] == "value"]\n'
                    "return rows"
                )
            raise DataSourceMissingError(
                "No data source registered. Make sure a table is registered before using query()."
            )

        final_sql = sql
        try:
            if not self.registry.is_initialized():
                logger.info("[QUERY] Engine not initialized, initializing now")
                self.registry.initialize()

            info = self.registry.resolve(self.source_handles[0])
            table = info.canonical_table_name
            if table:
                final_sql = self._alias_re.sub(quote_identifier(table), sql)
                final_sql = substitute_table_placeholders(final_sql, table)
            else:
                logger.warning(
                    f"[QUERY] No table name for source {self.source_handles[0]!r}"
                )
                table = self.source_handles[0]

            final_sql, params = apply_filters(
                final_sql, table, self.filters, self.null_sentinel, self.select_all
            )
            logger.debug(f"[QUERY] {final_sql} params={params}")
            return self.registry.execute(final_sql, params)
        except QueryError:
            raise
        except Exception as e:
            raise QueryError(str(e), query=final_sql) from e
