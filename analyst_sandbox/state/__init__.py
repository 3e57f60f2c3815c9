"""Execution state carried across blocks of one turn."""

from .store import ExecutionContext, StateStore, is_persistable_name

__all__ = ["ExecutionContext", "StateStore", "is_persistable_name"]
