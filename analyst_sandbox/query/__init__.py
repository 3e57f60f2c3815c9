"""Bridge from scripts into the analytical query engine."""

from .bridge import QueryBridge
from .filters import (
    NULL_SENTINEL,
    SELECT_ALL_SENTINEL,
    apply_filters,
    build_filter_conditions,
    quote_identifier,
    substitute_table_placeholders,
)
from .registry import DuckDBRegistry, canonical_table_name, frame_to_records

__all__ = [
    "QueryBridge",
    "NULL_SENTINEL",
    "SELECT_ALL_SENTINEL",
    "apply_filters",
    "build_filter_conditions",
    "quote_identifier",
    "substitute_table_placeholders",
    "DuckDBRegistry",
    "canonical_table_name",
    "frame_to_records",
]
