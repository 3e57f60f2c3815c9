"""Exception taxonomy for script detection and execution."""

from typing import Any

from .types import ErrorDescriptor, ErrorKind


class SandboxError(Exception):
    """Base class for every failure the engine reports back to the script author."""

    kind: ErrorKind = ErrorKind.RUNTIME

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_descriptor(self) -> ErrorDescriptor:
        """Convert to an immutable error descriptor."""
        return ErrorDescriptor(kind=self.kind, message=self.message, details=self.details)


class SecurityViolation(SandboxError):
    """Raised when a script matches a denylist pattern."""

    kind = ErrorKind.SECURITY


class ValidationRejection(SandboxError):
    """Raised when a candidate block is not an executable data script."""

    kind = ErrorKind.VALIDATION_REJECTED


class ValidationIncomplete(SandboxError):
    """Raised when a script looks truncated and needs a continuation."""

    kind = ErrorKind.VALIDATION_INCOMPLETE


class CompileError(SandboxError):
    """Raised when the host compiler rejects the script."""

    kind = ErrorKind.COMPILE


class ExecutionTimeout(SandboxError):
    """Raised when a script does not finish within the time limit."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout: float):
        super().__init__(
            f"Execution timed out after {timeout:g} seconds",
            {"timeout": timeout},
        )
        self.timeout = timeout


class ScriptRuntimeError(SandboxError):
    """Raised when the script itself raises or the engine cannot be bound."""

    kind = ErrorKind.RUNTIME


class UndefinedResult(SandboxError):
    """Raised when a script produces no value."""

    kind = ErrorKind.UNDEFINED_RESULT


class QueryError(SandboxError):
    """Raised when the analytical engine rejects a query issued by a script."""

    kind = ErrorKind.QUERY

    def __init__(self, message: str, query: str | None = None):
        super().__init__(message, {"query": query} if query is not None else {})
        self.query = query


class DataSourceMissingError(QueryError):
    """Raised when query() is called without a registered data source."""

    def __init__(self, message: str):
        super().__init__(message)
