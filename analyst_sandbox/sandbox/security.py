"""Security gate: textual denylist applied before any compilation.

Scripts are checked against an ordered list of (pattern, message) pairs. The
first matching pattern wins and its message is reported to the author. The
restricted builtins table in `builtins.py` is a second, runtime layer below
this one.
"""

import logging
import re

from ..core.errors import SecurityViolation
from ..core.types import SecurityVerdict

logger = logging.getLogger(__name__)


# Patterns checked for every AI-generated script, in order
SCRIPT_DENYLIST: list[tuple[str, str]] = [
    # Dynamic module loading
    (r"\b__import__\b", "__import__() is not allowed"),
    (r"\bimportlib\b", "importlib is not allowed"),
    (
        r"^\s*(?:import|from)\s+(?:os|sys|subprocess|shutil|ctypes|multiprocessing|builtins|io|inspect|gc)\b",
        "importing system modules is not allowed",
    ),
    # Dynamic evaluation
    (r"\beval\s*\(", "eval() is not allowed"),
    (r"(?<![\w.])exec\s*\(", "exec() is not allowed"),
    (r"(?<![\w.])compile\s*\(", "compile() is not allowed"),
    (r"\b(?:FunctionType|CodeType|LambdaType)\b", "function constructors are not allowed"),
    # Deferred execution and timers
    (r"\bthreading\b", "threading is not allowed"),
    (r"\bTimer\s*\(", "timers are not allowed"),
    (r"^\s*(?:import|from)\s+(?:sched|signal|asyncio|concurrent)\b", "scheduling modules are not allowed"),
    (r"\bcall_(?:later|at|soon)\s*\(", "deferred callbacks are not allowed"),
    # Network access
    (
        r"^\s*(?:import|from)\s+(?:socket|urllib|requests|httpx|aiohttp|http|ftplib|smtplib)\b",
        "network modules are not allowed",
    ),
    (r"\b(?:socket|urllib|requests|httpx|aiohttp)\s*\.", "network access is not allowed"),
    (r"\burlopen\s*\(", "urlopen() is not allowed"),
    # Host global and process objects
    (r"\b(?:globals|locals|vars)\s*\(", "access to global scope is not allowed"),
    (r"\bos\s*\.", "os object is not allowed"),
    (r"\bsys\s*\.", "sys object is not allowed"),
    (r"\bsubprocess\b", "subprocess is not allowed"),
    (r"\b__builtins__\b|\bbuiltins\s*\.", "builtins object is not allowed"),
    (r"\bgetattr\s*\(.*,\s*['\"]__", "dunder access via getattr() is not allowed"),
    (r"\.\s*__\w+__", "dunder attribute access is not allowed"),
    # Persistent storage
    (r"(?<![\w.])open\s*\(", "open() is not allowed"),
    (r"\bpathlib\b|\bPath\s*\(", "filesystem paths are not allowed"),
    (r"\b(?:shelve|pickle|sqlite3|dbm)\b", "persistent storage is not allowed"),
    (r"\bto_(?:csv|parquet|pickle|excel|sql|feather|hdf)\s*\(", "writing files is not allowed"),
    (
        r"\bread_(?:csv|json|pickle|parquet|excel|sql\w*|html|xml|feather|hdf|table|fwf|orc"
        r"|stata|sas|spss|clipboard)\s*\(",
        "reading files or URLs is not allowed",
    ),
    (r"\b(?:ExcelFile|ExcelWriter|HDFStore)\b", "file handles are not allowed"),
]

# Additional patterns for hand-written scripts from the manual playground
MANUAL_DENYLIST: list[tuple[str, str]] = SCRIPT_DENYLIST + [
    (r"(?<![\w.])input\s*\(", "input() is not allowed"),
    (r"\bbreakpoint\s*\(", "breakpoint() is not allowed"),
    (r"(?<![\w.])(?:exit|quit)\s*\(", "exit() is not allowed"),
    (r"\b(?:setattr|delattr)\s*\(", "attribute mutation is not allowed"),
    (r"\bctypes\b", "ctypes is not allowed"),
    (r"\bmultiprocessing\b", "multiprocessing is not allowed"),
    (r"\basyncio\b", "asyncio is not allowed"),
    (r"\bwebbrowser\b", "webbrowser is not allowed"),
    (r"\bmemoryview\s*\(", "memoryview() is not allowed"),
]


class SecurityGate:
    """Ordered, first-match-wins denylist check."""

    def __init__(self, denylist: list[tuple[str, str]] | None = None):
        patterns = SCRIPT_DENYLIST if denylist is None else denylist
        self._rules = [(re.compile(p, re.MULTILINE), msg) for p, msg in patterns]

    def check(self, code: str) -> SecurityVerdict:
        """
        Check code against the denylist.

        Args:
            code: Raw script text

        Returns:
            SecurityVerdict with the message of the first matching pattern
        """
        for pattern, message in self._rules:
            if pattern.search(code):
                logger.warning(f"[SECURITY] Blocked script: {message}")
                return SecurityVerdict(safe=False, message=message)
        return SecurityVerdict(safe=True)

    def enforce(self, code: str) -> None:
        """Raise SecurityViolation if the code matches a denylist pattern."""
        verdict = self.check(code)
        if not verdict.safe:
            raise SecurityViolation(verdict.message or "Code contains prohibited patterns")


def check_manual_script(code: str, max_length: int = 50_000) -> SecurityVerdict:
    """
    Check a hand-written script against the longer manual denylist.

    The message format follows the playground's wording so that authors can
    tell this layer apart from the script gate.
    """
    if len(code) > max_length:
        return SecurityVerdict(
            safe=False,
            message=f"Code exceeds maximum length of {max_length:,} characters",
        )

    verdict = SecurityGate(MANUAL_DENYLIST).check(code)
    if verdict.safe:
        return verdict
    return SecurityVerdict(
        safe=False,
        message=f"Security: Code contains potentially dangerous pattern: {verdict.message}",
    )
