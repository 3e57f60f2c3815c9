"""Sandboxed script execution."""

from .builtins import BLOCKED_BUILTINS, build_builtins
from .engine import CodeExecutor, is_sql_query
from .playground import run_manual_script
from .rewrite import PreparedScript, compile_script, prepare_script
from .security import MANUAL_DENYLIST, SCRIPT_DENYLIST, SecurityGate, check_manual_script
from .timeout import TimeoutManager, run_with_timeout

__all__ = [
    "BLOCKED_BUILTINS",
    "build_builtins",
    "CodeExecutor",
    "is_sql_query",
    "run_manual_script",
    "PreparedScript",
    "compile_script",
    "prepare_script",
    "MANUAL_DENYLIST",
    "SCRIPT_DENYLIST",
    "SecurityGate",
    "check_manual_script",
    "TimeoutManager",
    "run_with_timeout",
]
