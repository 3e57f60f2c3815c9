"""Data-source registry backed by an in-process DuckDB connection."""

import logging
import re
import threading
from typing import Any

import pandas as pd

from ..core.types import SourceInfo

logger = logging.getLogger(__name__)


def canonical_table_name(handle: str) -> str:
    """Derive the engine table name for a source handle."""
    return "csv_" + re.sub(r"[^A-Za-z0-9]", "_", handle)


def frame_to_records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Convert a DataFrame to row dicts with missing values as None."""
    if df.empty:
        return []
    clean = df.astype(object).where(df.notna(), None)
    return clean.to_dict(orient="records")


class DuckDBRegistry:
    """
    Registry of tabular sources queryable through DuckDB.

    The duckdb module is imported lazily on initialize() so that constructing
    a registry is free. Frames registered before initialization are attached
    when the connection opens. All engine access is serialized with a lock.
    """

    def __init__(self, database: str = ":memory:") -> None:
        self.database = database
        self._conn: Any | None = None
        self._frames: dict[str, pd.DataFrame] = {}
        self._tables: dict[str, str] = {}
        self._lock = threading.RLock()

    def is_initialized(self) -> bool:
        return self._conn is not None

    def initialize(self) -> None:
        """Open the DuckDB connection and attach registered frames."""
        with self._lock:
            if self._conn is not None:
                return

            import duckdb

            self._conn = duckdb.connect(database=self.database)
            for table_name, df in self._frames.items():
                self._conn.register(table_name, df)
            logger.info(f"[QUERY] DuckDB initialized with {len(self._frames)} table(s)")

    def register_frame(
        self, handle: str, df: pd.DataFrame, table_name: str | None = None
    ) -> str:
        """
        Register a DataFrame under a source handle.

        Args:
            handle: Opaque source identifier (e.g. an upload id)
            df: Data to expose
            table_name: Explicit table name, derived from the handle if omitted

        Returns:
            The canonical table name
        """
        name = table_name or canonical_table_name(handle)
        with self._lock:
            self._frames[name] = df
            self._tables[handle] = name
            if self._conn is not None:
                self._conn.register(name, df)
        logger.debug(f"[QUERY] Registered {handle!r} as {name} ({len(df)} rows)")
        return name

    def register_records(
        self, handle: str, rows: list[dict[str, Any]], table_name: str | None = None
    ) -> str:
        """Register a list of row dicts under a source handle."""
        return self.register_frame(handle, pd.DataFrame(rows), table_name)

    def unregister(self, handle: str) -> bool:
        """Remove a handle's table. Returns True if it was registered."""
        with self._lock:
            name = self._tables.pop(handle, None)
            if name is None:
                return False
            self._frames.pop(name, None)
            if self._conn is not None:
                self._conn.unregister(name)
            return True

    def resolve(self, handle: str) -> SourceInfo:
        """Return initialization state and canonical table name for a handle."""
        name = self._tables.get(handle) or canonical_table_name(handle)
        return SourceInfo(initialized=self.is_initialized(), canonical_table_name=name)

    def execute(self, sql: str, params: list[Any] | None = None) -> list[dict]:
        """
        Run a query and return rows as dicts.

        Raises:
            RuntimeError: If the registry has not been initialized
        """
        if self._conn is None:
            raise RuntimeError("DuckDB is not initialized")

        with self._lock:
            df = self._conn.execute(sql, params or []).fetchdf()
        return frame_to_records(df)

    def close(self) -> None:
        """Close the connection. Registered frames are kept for re-initialization."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
