"""Stateful execution engine for AI-generated analysis scripts."""

import ast
import io
import logging
import re
import time
from collections.abc import Mapping, Sequence
from types import MappingProxyType
from typing import Any

import pandas as pd

from ..config import SandboxConfig
from ..core.errors import (
    SandboxError,
    ScriptRuntimeError,
    UndefinedResult,
    ValidationIncomplete,
    ValidationRejection,
)
from ..core.protocols import DataSourceRegistry
from ..core.serialize import dumps_result
from ..core.types import (
    BlockOutcome,
    CodeValidation,
    ErrorKind,
    ExecutionResult,
    FilterSet,
    ScriptBlock,
)
from ..detection.blocks import BlockDetector
from ..detection.validator import Validator, apply_typo_corrections
from ..query.bridge import QueryBridge
from ..query.filters import apply_filters, quote_identifier, substitute_table_placeholders
from ..query.registry import frame_to_records
from ..state.store import ExecutionContext, StateStore
from .builtins import build_builtins
from .rewrite import PreparedScript, compile_script, prepare_script
from .security import SecurityGate
from .timeout import run_with_timeout

logger = logging.getLogger(__name__)

SQL_STATEMENT_RE = re.compile(r"^\s*(?:SELECT|WITH|INSERT|UPDATE|DELETE)\b", re.IGNORECASE)


def is_sql_query(code: str) -> bool:
    """
    Check whether a block is a bare declarative query rather than a script.

    `with`, `select = ...` and friends are valid Python, so a block only counts
    as SQL when it starts with a statement keyword and does not parse.
    """
    if not SQL_STATEMENT_RE.match(code):
        return False
    try:
        ast.parse(code.strip())
    except SyntaxError:
        return True
    return False


def _undefined_message(prepared: PreparedScript) -> str:
    if prepared.has_explicit_return:
        if prepared.return_source:
            return (
                "Code executed but returned None. The return statement references "
                f'"{prepared.return_source}" which may be None. Check that every '
                "branch returns a value and all variables are defined before the "
                "return statement."
            )
        return (
            "Code executed but returned None: the return statement has no value. "
            "Return the computed value, e.g. return len(data)."
        )
    if prepared.auto_return == "expression":
        return (
            f'Code executed but the last expression "{prepared.return_source}" '
            "evaluated to None. Please add a return statement. Example: "
            'return len(data) or return {"value": value}'
        )
    return (
        "Code executed but returned None. Please add a return statement to your "
        'code. For example: return len(data) or return {"result": value}'
    )


class CodeExecutor:
    """
    Runs accepted scripts against bound data with state carried between blocks.

    Each script sees the fixed bindings `data`, `csv_data`, `summary` and
    `query`, followed by every name persisted by earlier successful blocks in
    the same execution context.
    """

    def __init__(
        self,
        data: list[dict[str, Any]] | pd.DataFrame | None = None,
        summary: Mapping[str, Any] | None = None,
        registry: DataSourceRegistry | None = None,
        source_handles: Sequence[str] | str | None = None,
        filters: FilterSet | Mapping[str, Any] | None = None,
        allow_sql: bool = False,
        config: SandboxConfig | None = None,
    ):
        """
        Initialize the executor.

        Args:
            data: In-memory rows (a DataFrame is converted to records)
            summary: Read-only summary information exposed to scripts
            registry: Analytical query engine for registered tables
            source_handles: Handle(s) of the registered tables for this data
            filters: Active column filters applied to declarative queries
            allow_sql: Run bare declarative queries directly
            config: Execution limits and sentinels
        """
        self.config = config or SandboxConfig()
        if isinstance(data, pd.DataFrame):
            data = frame_to_records(data)
        self.data = data
        self.summary = dict(summary or {})
        self.registry = registry
        if isinstance(source_handles, str):
            source_handles = [source_handles]
        self.source_handles = list(source_handles or [])
        if filters is not None and not isinstance(filters, FilterSet):
            filters = FilterSet.from_dict(dict(filters))
        self.filters = filters
        self.allow_sql = allow_sql

        self.validator = Validator(
            min_length=self.config.min_block_length,
            bracket_tolerance=self.config.bracket_tolerance,
        )
        self.detector = BlockDetector(self.config, self.validator)
        self.gate = SecurityGate()
        self.context = ExecutionContext(state=StateStore(self.config.result_key))

    # Detection and validation

    def detect_code_blocks_in_stream(self, text: str) -> list[ScriptBlock]:
        """Detect executable blocks in (possibly still streaming) model output."""
        return self.detector.detect(text)

    def validate_code(self, code: str) -> CodeValidation:
        """Check a script for truncation before running it."""
        return self.validator.validate_code(code)

    # State

    def clear_execution_state(self, context: ExecutionContext | None = None) -> None:
        """Drop all persisted values (called when a turn completes)."""
        (context or self.context).state.clear()
        logger.debug("[STATE] Execution state cleared")

    def get_execution_state(self, context: ExecutionContext | None = None) -> Mapping[str, Any]:
        """Read-only snapshot of the persisted values."""
        return (context or self.context).state.snapshot()

    # Execution

    def execute_code(self, code: str, context: ExecutionContext | None = None) -> ExecutionResult:
        """
        Execute one script block.

        Failures are reported in the returned result, never raised.

        Args:
            code: Script text
            context: Turn context whose state is read and updated

        Returns:
            ExecutionResult
        """
        context = context or self.context
        start = time.perf_counter()

        buffer = io.StringIO()
        try:
            if is_sql_query(code):
                if self.allow_sql:
                    return self._execute_sql(code.strip(), context, start)
                raise ValidationRejection(
                    "SQL queries are only available for database data. Registered "
                    "tables must be queried from a script with query() instead."
                )

            self.gate.enforce(code)
            rows = self._bind_data()

            source = code.strip().replace("\r\n", "\n").replace("\r", "\n")
            source = apply_typo_corrections(source)

            params, values = self._bindings(rows, context)
            prepared = prepare_script(source, set(params))
            namespace = {
                "__builtins__": build_builtins(self.config.allowed_modules, buffer),
                "__name__": "__sandbox__",
            }
            script = compile_script(prepared, params, namespace)

            logger.info(
                f"[EXEC] Running script ({len(source)} chars, {len(params)} bindings)"
            )
            value = run_with_timeout(script, tuple(values), self.config.time_limit)
        except SandboxError as e:
            return self._failure(e, start, self._stdout(buffer))
        except Exception as e:
            logger.info(f"[EXEC] Script raised {type(e).__name__}: {e}")
            return ExecutionResult.error_result(
                ErrorKind.RUNTIME,
                str(e) or type(e).__name__,
                {"exception_type": type(e).__name__},
                elapsed_ms=self._elapsed(start),
                stdout=self._stdout(buffer),
            )

        return self._classify(value, prepared, context, start, self._stdout(buffer))

    def _bind_data(self) -> list[dict[str, Any]]:
        if self.data:
            return list(self.data)

        if self.source_handles and self.registry is not None:
            if not self.registry.is_initialized():
                logger.info("[EXEC] No in-memory data, initializing analytical engine")
                try:
                    self.registry.initialize()
                except Exception as e:
                    raise ScriptRuntimeError(
                        f"Failed to initialize the analytical engine: {e}. "
                        "The data must be loaded for code execution."
                    ) from e
            # scripts must go through query()
            return []

        raise ScriptRuntimeError(
            "No data available for code execution. Please ensure data is loaded "
            "or a data source is registered."
        )

    def _bindings(
        self, rows: list[dict[str, Any]], context: ExecutionContext
    ) -> tuple[list[str], list[Any]]:
        bridge = QueryBridge(
            self.registry,
            self.source_handles,
            self.filters,
            in_memory_rows=len(rows),
            alias=self.config.data_alias,
            null_sentinel=self.config.null_sentinel,
            select_all=self.config.select_all_sentinel,
        )
        params = ["data", self.config.data_alias, "summary", "query"]
        values: list[Any] = [rows, rows, MappingProxyType(self.summary), bridge]

        for key, value in context.state.items():
            if key not in params:
                params.append(key)
                values.append(value)

        if len(params) > 4:
            logger.debug(f"[EXEC] Variables from previous blocks: {params[4:]}")
        return params, values

    def _classify(
        self,
        value: Any,
        prepared: PreparedScript,
        context: ExecutionContext,
        start: float,
        stdout: str,
    ) -> ExecutionResult:
        elapsed = self._elapsed(start)

        if isinstance(value, Mapping) and value.get("error"):
            return ExecutionResult.error_result(
                ErrorKind.SCRIPT_REPORTED,
                str(value["error"]),
                elapsed_ms=elapsed,
                stdout=stdout,
                value=value,
            )

        if value is None:
            logger.info("[EXEC] Script returned None, previous state preserved")
            return self._failure(UndefinedResult(_undefined_message(prepared)), start, stdout)

        context.state.persist_result(value, self.config.result_key)
        return ExecutionResult.success_result(value, elapsed_ms=elapsed, stdout=stdout)

    def _execute_sql(
        self, sql: str, context: ExecutionContext, start: float
    ) -> ExecutionResult:
        if self.registry is None:
            return ExecutionResult.error_result(
                ErrorKind.QUERY, "Database connection not available"
            )

        final_sql = sql
        try:
            if not self.registry.is_initialized():
                self.registry.initialize()

            if self.source_handles:
                table = self.registry.resolve(self.source_handles[0]).canonical_table_name
            else:
                table = None
            table = table or self.config.default_sql_table

            final_sql = re.sub(
                rf"\b{re.escape(self.config.data_alias)}\b",
                quote_identifier(table),
                sql,
                flags=re.IGNORECASE,
            )
            final_sql = substitute_table_placeholders(final_sql, table)
            final_sql, params = apply_filters(
                final_sql,
                table,
                self.filters,
                self.config.null_sentinel,
                self.config.select_all_sentinel,
            )
            rows = self.registry.execute(final_sql, params)
        except Exception as e:
            return ExecutionResult.error_result(
                ErrorKind.QUERY,
                f"SQL query error: {e}\n\nQuery: {final_sql}",
                {"query": final_sql},
                elapsed_ms=self._elapsed(start),
            )

        context.state.persist_result(rows, self.config.result_key)
        return ExecutionResult.success_result(rows, elapsed_ms=self._elapsed(start))

    def _failure(self, error: SandboxError, start: float, stdout: str = "") -> ExecutionResult:
        return ExecutionResult(
            success=False,
            error=error.to_descriptor(),
            elapsed_ms=self._elapsed(start),
            stdout=stdout,
        )

    def _elapsed(self, start: float) -> int:
        return int((time.perf_counter() - start) * 1000)

    def _stdout(self, buffer: io.StringIO) -> str:
        output = buffer.getvalue()
        if len(output) > self.config.max_output_length:
            output = output[: self.config.max_output_length] + "..."
        return output

    # Turn orchestration

    def run_turn(
        self, text: str, context: ExecutionContext | None = None
    ) -> list[BlockOutcome]:
        """
        Detect, validate and execute every block of a model turn in order.

        A failing block never stops later blocks. Blocks that look truncated
        are reported with needs_completion instead of being run.

        Args:
            text: Full model output for the turn
            context: Turn context; defaults to the executor's own

        Returns:
            One outcome per detected block
        """
        context = context or self.context
        outcomes: list[BlockOutcome] = []

        for block in self.detect_code_blocks_in_stream(text):
            if context.cancelled:
                logger.info(f"[EXEC] Turn {context.turn_id} cancelled, stopping")
                break

            if not block.is_complete:
                outcomes.append(self._skipped(block, ValidationIncomplete("Block is not closed yet")))
                continue

            validation = self.validate_code(block.raw_code)
            if validation.needs_completion:
                outcomes.append(self._skipped(block, ValidationIncomplete(validation.error or "")))
                continue
            if not validation.valid:
                outcomes.append(self._skipped(block, ValidationRejection(validation.error or "")))
                continue

            outcomes.append(BlockOutcome(block, result=self.execute_code(block.raw_code, context)))

        return outcomes

    def _skipped(self, block: ScriptBlock, error: SandboxError) -> BlockOutcome:
        logger.info(f"[EXEC] Block at {block.start_offset} not run: {error.message}")
        return BlockOutcome(
            block,
            needs_completion=isinstance(error, ValidationIncomplete),
            skipped_reason=error.message,
            error=error.to_descriptor(),
        )

    # Rendering

    def format_result(self, result: ExecutionResult) -> str:
        """Render a result with the markers the block detector recognises."""
        if result.success:
            if isinstance(result.value, (str, int, float, bool)):
                body = str(result.value)
            else:
                body = dumps_result(result.value)
            text = f"**Code Execution Result** ({result.elapsed_ms}ms):\n```json\n{body}\n```"
        else:
            text = (
                f"**Code Execution Error** ({result.elapsed_ms}ms):\n"
                f"```\n{result.error_message}\n```"
            )

        if result.stdout:
            text += f"\n\nOutput:\n```text\n{result.stdout.rstrip()}\n```"
        return text
