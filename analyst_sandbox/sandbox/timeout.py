"""Thread-based timeout handling for in-process script calls."""

import logging
import threading
from collections.abc import Callable
from typing import Any

from ..core.errors import ExecutionTimeout

logger = logging.getLogger(__name__)


def run_with_timeout(
    fn: Callable[..., Any], args: tuple = (), timeout: float = 30.0
) -> Any:
    """
    Run a callable on a worker thread and wait at most `timeout` seconds.

    There is no way to interrupt a running Python thread, so on timeout the
    worker is left running as a daemon and whatever it eventually returns is
    discarded.

    Args:
        fn: Callable to run
        args: Positional arguments for fn
        timeout: Timeout in seconds

    Returns:
        fn's return value

    Raises:
        ExecutionTimeout: If fn does not finish in time
        Exception: Whatever fn raised, re-raised in the caller's thread
    """
    outcome: dict[str, Any] = {}
    done = threading.Event()

    def target() -> None:
        try:
            outcome["value"] = fn(*args)
        except BaseException as e:  # re-raised in the waiting thread
            outcome["error"] = e
        finally:
            done.set()

    worker = threading.Thread(target=target, name="sandbox-script", daemon=True)
    worker.start()

    if not done.wait(timeout):
        logger.warning(f"[EXEC] Script exceeded {timeout:g}s, abandoning worker thread")
        raise ExecutionTimeout(timeout)

    worker.join()
    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("value")


class TimeoutManager:
    """Reusable wrapper holding a fixed timeout."""

    def __init__(self, timeout: float):
        """
        Initialize timeout manager.

        Args:
            timeout: Timeout in seconds
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout

    def run(self, fn: Callable[..., Any], *args: Any) -> Any:
        """
        Run fn with the managed timeout.

        Raises:
            ExecutionTimeout: If timeout occurs
        """
        return run_with_timeout(fn, args, self.timeout)
