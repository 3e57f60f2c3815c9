"""Core types, errors and protocols."""

from .types import (
    BlockOutcome,
    Classification,
    CodeValidation,
    DelimiterKind,
    ErrorDescriptor,
    ErrorKind,
    ExecutionResult,
    FilterSet,
    ScriptBlock,
    SecurityVerdict,
    SourceInfo,
    Verdict,
)
from .errors import (
    CompileError,
    DataSourceMissingError,
    ExecutionTimeout,
    QueryError,
    SandboxError,
    ScriptRuntimeError,
    SecurityViolation,
    UndefinedResult,
    ValidationIncomplete,
    ValidationRejection,
)
from .protocols import DataSourceRegistry
from .serialize import dumps_result, to_jsonable

__all__ = [
    "BlockOutcome",
    "Classification",
    "CodeValidation",
    "DelimiterKind",
    "ErrorDescriptor",
    "ErrorKind",
    "ExecutionResult",
    "FilterSet",
    "ScriptBlock",
    "SecurityVerdict",
    "SourceInfo",
    "Verdict",
    "CompileError",
    "DataSourceMissingError",
    "ExecutionTimeout",
    "QueryError",
    "SandboxError",
    "ScriptRuntimeError",
    "SecurityViolation",
    "UndefinedResult",
    "ValidationIncomplete",
    "ValidationRejection",
    "DataSourceRegistry",
    "dumps_result",
    "to_jsonable",
]
