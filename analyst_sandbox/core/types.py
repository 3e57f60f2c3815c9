"""Core dataclasses shared by detection, validation and execution."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DelimiterKind(str, Enum):
    """How a script block was delimited in the source text."""

    FENCED = "fenced"
    TAGGED = "tagged"


class ErrorKind(str, Enum):
    """Failure categories reported to the script author."""

    SECURITY = "security"
    VALIDATION_REJECTED = "validation_rejected"
    VALIDATION_INCOMPLETE = "validation_incomplete"
    COMPILE = "compile"
    TIMEOUT = "timeout"
    RUNTIME = "runtime"
    UNDEFINED_RESULT = "undefined_result"
    QUERY = "query"
    SCRIPT_REPORTED = "script_reported"


class Verdict(str, Enum):
    """Purpose classification of a candidate block."""

    ACCEPT = "accept"
    FOREIGN_LANGUAGE = "foreign_language"
    TOO_SHORT = "too_short"
    NOT_A_DATA_SCRIPT = "not_a_data_script"


@dataclass(frozen=True)
class ScriptBlock:
    """A candidate script extracted from AI-generated text."""

    raw_code: str
    delimiter_kind: DelimiterKind
    declared_label: str | None
    start_offset: int
    end_offset: int
    is_complete: bool = True

    def overlaps(self, other: "ScriptBlock") -> bool:
        """Check whether two blocks share any part of the source text."""
        return self.start_offset < other.end_offset and other.start_offset < self.end_offset


@dataclass(frozen=True)
class ErrorDescriptor:
    """Structured description of a failed execution."""

    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"kind": self.kind.value, "message": self.message, "details": dict(self.details)}


@dataclass(frozen=True)
class ExecutionResult:
    """
    Outcome of executing one script block.

    Exactly one of `value` (on success) or `error` (on failure) is meaningful.
    """

    success: bool
    value: Any | None = None
    error: ErrorDescriptor | None = None
    elapsed_ms: int = 0
    stdout: str = ""

    @property
    def failed(self) -> bool:
        """Check if execution failed."""
        return not self.success

    @property
    def error_message(self) -> str | None:
        """Human-readable error message, if any."""
        return self.error.message if self.error else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "value": self.value,
            "error": self.error.to_dict() if self.error else None,
            "elapsed_ms": self.elapsed_ms,
            "stdout": self.stdout,
        }

    @classmethod
    def success_result(
        cls, value: Any, elapsed_ms: int = 0, stdout: str = ""
    ) -> "ExecutionResult":
        """Create a successful result."""
        return cls(success=True, value=value, elapsed_ms=elapsed_ms, stdout=stdout)

    @classmethod
    def error_result(
        cls,
        kind: ErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
        elapsed_ms: int = 0,
        stdout: str = "",
        value: Any | None = None,
    ) -> "ExecutionResult":
        """Create an error result."""
        return cls(
            success=False,
            value=value,
            error=ErrorDescriptor(kind=kind, message=message, details=details or {}),
            elapsed_ms=elapsed_ms,
            stdout=stdout,
        )

    @classmethod
    def timeout_result(cls, timeout: float, elapsed_ms: int = 0) -> "ExecutionResult":
        """Create a timeout result."""
        return cls.error_result(
            ErrorKind.TIMEOUT,
            f"Execution timed out after {timeout:g} seconds",
            {"timeout": timeout},
            elapsed_ms=elapsed_ms,
        )


@dataclass(frozen=True)
class Classification:
    """Result of purpose classification for a candidate block."""

    verdict: Verdict
    reason: str = ""

    @property
    def accepted(self) -> bool:
        return self.verdict is Verdict.ACCEPT


@dataclass(frozen=True)
class CodeValidation:
    """Result of a completeness check."""

    valid: bool
    needs_completion: bool = False
    error: str | None = None


@dataclass(frozen=True)
class SecurityVerdict:
    """Result of a denylist check."""

    safe: bool
    message: str | None = None


@dataclass
class FilterSet:
    """Active column filters applied to declarative queries."""

    columns: list[str] = field(default_factory=list)
    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> "FilterSet":
        """Create a filter set from a column -> value(s) mapping."""
        return cls(columns=list(values.keys()), values=dict(values))

    def is_empty(self) -> bool:
        return not self.columns


@dataclass(frozen=True)
class SourceInfo:
    """Registry information about a data-source handle."""

    initialized: bool
    canonical_table_name: str | None = None


@dataclass(frozen=True)
class BlockOutcome:
    """What happened to one detected block during a turn."""

    block: ScriptBlock
    result: ExecutionResult | None = None
    needs_completion: bool = False
    skipped_reason: str | None = None
    error: ErrorDescriptor | None = None
