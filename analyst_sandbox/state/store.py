"""Per-turn state carried between sequential script executions."""

import builtins
import keyword
import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

logger = logging.getLogger(__name__)

# Keys that must never become script-visible names
FORBIDDEN_KEYS = frozenset({"__proto__", "constructor", "prototype"})

# Persisting these would shadow the builtin in every later script
BUILTIN_NAMES = frozenset(dir(builtins))


def is_persistable_name(name: Any) -> bool:
    """Check whether a key can safely become a script parameter name."""
    if not isinstance(name, str) or not name.isidentifier():
        return False
    if keyword.iskeyword(name) or name in FORBIDDEN_KEYS or name in BUILTIN_NAMES:
        return False
    return not (name.startswith("__") and name.endswith("__"))


class StateStore:
    """In-memory name -> value store owned by a single execution context."""

    def __init__(self, result_key: str = "result") -> None:
        self._data: dict[str, Any] = {}
        self.result_key = result_key

    def persist_result(self, value: Any, result_key: str | None = None) -> list[str]:
        """
        Record a successful execution's return value.

        The full value is stored under the result key. When the value is a
        mapping, each key that is a valid identifier is also stored on its
        own so later scripts can read it as a bare name.

        Args:
            value: The script's return value
            result_key: Name for the full value, defaults to the store's own

        Returns:
            Names that were written
        """
        result_key = result_key or self.result_key
        self._data[result_key] = value
        written = [result_key]

        if isinstance(value, Mapping):
            skipped = []
            for key, item in value.items():
                if is_persistable_name(key):
                    self._data[key] = item
                    written.append(key)
                else:
                    skipped.append(key)
            if skipped:
                logger.info(f"[STATE] Skipped keys unusable as names: {skipped!r}")

        logger.debug(f"[STATE] Persisted {written}")
        return written

    def get(self, key: str, default: Any = None) -> Any:
        """Load a value by name."""
        return self._data.get(key, default)

    def keys(self) -> list[str]:
        """List stored names in insertion order."""
        return list(self._data.keys())

    def items(self) -> list[tuple[str, Any]]:
        return list(self._data.items())

    def snapshot(self) -> Mapping[str, Any]:
        """Return a read-only copy of the current state."""
        return MappingProxyType(dict(self._data))

    def clear(self) -> None:
        """Drop all persisted values."""
        self._data.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


@dataclass
class ExecutionContext:
    """
    State for one conversational turn.

    Created empty at turn start, mutated after each successful execution and
    cleared when the turn completes or is cancelled. Never shared across turns.
    """

    turn_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: StateStore = field(default_factory=StateStore)
    cancelled: bool = False

    def cancel(self) -> None:
        """Stop further executions in this turn and drop its state."""
        self.cancelled = True
        self.state.clear()

    def complete(self) -> None:
        """Mark the turn finished and drop its state."""
        self.state.clear()
