"""Restricted builtins table for script execution."""

import builtins
import io
from collections.abc import Callable, Iterable
from typing import Any

# Removed from every script namespace
BLOCKED_BUILTINS = frozenset(
    {
        "eval",
        "exec",
        "compile",
        "open",
        "input",
        "exit",
        "quit",
        "globals",
        "locals",
        "vars",
        "breakpoint",
        "help",
        "memoryview",
        "copyright",
        "credits",
        "license",
        "BaseException",
        "SystemExit",
        "KeyboardInterrupt",
        "GeneratorExit",
    }
)


def make_restricted_import(allowed_modules: Iterable[str]) -> Callable[..., Any]:
    """Build an __import__ replacement that only admits allowlisted top-level modules."""
    allowed = frozenset(allowed_modules)

    def restricted_import(name, globals=None, locals=None, fromlist=(), level=0):
        """Import that blocks modules outside the allowlist."""
        if level != 0 or name.split(".")[0] not in allowed:
            raise ImportError(f"Import of '{name}' is not allowed")
        return __import__(name, globals, locals, fromlist, level)

    return restricted_import


def make_print(buffer: io.StringIO) -> Callable[..., None]:
    """Build a print replacement that writes to a per-execution buffer."""

    def sandbox_print(*args: Any, sep: str | None = " ", end: str | None = "\n", **kwargs: Any) -> None:
        buffer.write((" " if sep is None else sep).join(str(a) for a in args))
        buffer.write("\n" if end is None else end)

    return sandbox_print


def build_builtins(allowed_modules: Iterable[str], buffer: io.StringIO) -> dict[str, Any]:
    """
    Build the builtins mapping for one execution.

    Args:
        allowed_modules: Top-level modules scripts may import
        buffer: Destination for print output

    Returns:
        Mapping suitable for a namespace's __builtins__
    """
    table = {
        name: getattr(builtins, name)
        for name in dir(builtins)
        if not name.startswith("_") and name not in BLOCKED_BUILTINS
    }
    table["__import__"] = make_restricted_import(allowed_modules)
    # class statements need this
    table["__build_class__"] = builtins.__build_class__
    table["print"] = make_print(buffer)
    return table
