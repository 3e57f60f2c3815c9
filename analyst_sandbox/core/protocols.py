"""Protocol definitions for pluggable collaborators."""

from typing import Any, Protocol

from .types import SourceInfo


class DataSourceRegistry(Protocol):
    """Protocol for the analytical query engine that owns registered tables."""

    def is_initialized(self) -> bool:
        """Check whether the engine is ready to run queries."""
        ...

    def initialize(self) -> None:
        """Start the engine. Raises if the engine cannot be started."""
        ...

    def resolve(self, handle: str) -> SourceInfo:
        """Return initialization state and canonical table name for a handle."""
        ...

    def execute(self, sql: str, params: list[Any] | None = None) -> list[dict]:
        """Run a declarative query and return rows as dicts."""
        ...
