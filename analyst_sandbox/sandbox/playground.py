"""Manual authoring surface for hand-written scripts."""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..config import SandboxConfig
from ..core.protocols import DataSourceRegistry
from ..core.types import ErrorKind, ExecutionResult, FilterSet
from .engine import CodeExecutor
from .security import check_manual_script

logger = logging.getLogger(__name__)


def run_manual_script(
    code: str,
    registry: DataSourceRegistry | None = None,
    source_handles: Sequence[str] | str | None = None,
    filters: FilterSet | Mapping[str, Any] | None = None,
    config: SandboxConfig | None = None,
) -> ExecutionResult:
    """
    Run a script typed by a user rather than generated by a model.

    The longer manual denylist and the length limit are checked before any
    data binding is built; the script then goes through the regular engine
    with declarative queries enabled.
    """
    config = config or SandboxConfig()
    code = code.strip()

    if not code:
        return ExecutionResult.error_result(ErrorKind.VALIDATION_REJECTED, "No code to run")

    verdict = check_manual_script(code, config.max_manual_code_length)
    if not verdict.safe:
        logger.warning(f"[SECURITY] Manual script rejected: {verdict.message}")
        return ExecutionResult.error_result(ErrorKind.SECURITY, verdict.message or "")

    executor = CodeExecutor(
        data=None,
        registry=registry,
        source_handles=source_handles,
        filters=filters,
        allow_sql=True,
        config=config,
    )
    return executor.execute_code(code)
