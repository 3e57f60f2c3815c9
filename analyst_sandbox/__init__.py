"""Sandboxed, stateful execution of AI-generated data-analysis scripts."""

from .config import SandboxConfig
from .core import ErrorKind, ExecutionResult, FilterSet, ScriptBlock
from .detection import BlockDetector, extract_code_blocks, has_code_execution_request
from .query import DuckDBRegistry, QueryBridge
from .sandbox import CodeExecutor, SecurityGate, run_manual_script
from .state import ExecutionContext, StateStore

__all__ = [
    "SandboxConfig",
    "ErrorKind",
    "ExecutionResult",
    "FilterSet",
    "ScriptBlock",
    "BlockDetector",
    "extract_code_blocks",
    "has_code_execution_request",
    "DuckDBRegistry",
    "QueryBridge",
    "CodeExecutor",
    "SecurityGate",
    "run_manual_script",
    "ExecutionContext",
    "StateStore",
]
