"""Tests for the security gate."""

import pytest

from analyst_sandbox.core.errors import SecurityViolation
from analyst_sandbox.sandbox.security import (
    MANUAL_DENYLIST,
    SCRIPT_DENYLIST,
    SecurityGate,
    check_manual_script,
)


class TestSecurityGate:
    """Tests for the script denylist."""

    @pytest.fixture
    def gate(self) -> SecurityGate:
        return SecurityGate()

    def test_safe_script(self, gate: SecurityGate) -> None:
        """Test an ordinary data script passes."""
        verdict = gate.check("total = sum(row['a'] for row in data)\nreturn total")

        assert verdict.safe
        assert verdict.message is None

    @pytest.mark.parametrize(
        "code,message",
        [
            ("return eval('1 + 1')", "eval() is not allowed"),
            ("exec('x = 1')", "exec() is not allowed"),
            ("__import__('os')", "__import__() is not allowed"),
            ("import os\nreturn os.listdir('.')", "importing system modules is not allowed"),
            ("import socket", "network modules are not allowed"),
            ("requests.get('http://example.com')", "network access is not allowed"),
            ("return globals()", "access to global scope is not allowed"),
            ("f = open('data.csv')", "open() is not allowed"),
            ("import threading", "threading is not allowed"),
            ("return data.__class__", "dunder attribute access is not allowed"),
            ("import pickle", "persistent storage is not allowed"),
            ("frame = pd.read_csv('/etc/hostname')", "reading files or URLs is not allowed"),
            ("frame = pandas.read_json('http://example.com/x')", "reading files or URLs is not allowed"),
            ("store = pd.HDFStore('x.h5')", "file handles are not allowed"),
        ],
    )
    def test_blocked_patterns(self, gate: SecurityGate, code: str, message: str) -> None:
        """Test each category of forbidden pattern is reported."""
        verdict = gate.check(code)

        assert not verdict.safe
        assert verdict.message == message

    def test_first_match_wins(self, gate: SecurityGate) -> None:
        """Test the earliest pattern in the list determines the message."""
        verdict = gate.check("eval(open('x').read())")

        assert verdict.message == "eval() is not allowed"

    def test_method_named_compile_is_allowed(self, gate: SecurityGate) -> None:
        """Test re.compile is not mistaken for the compile builtin."""
        assert gate.check("import re\npattern = re.compile('a+')\nreturn 1").safe

    def test_enforce_raises(self, gate: SecurityGate) -> None:
        with pytest.raises(SecurityViolation, match="eval"):
            gate.enforce("eval('1')")


class TestManualDenylist:
    """Tests for the manual playground checks."""

    def test_manual_list_extends_script_list(self) -> None:
        assert len(MANUAL_DENYLIST) > len(SCRIPT_DENYLIST)
        assert MANUAL_DENYLIST[: len(SCRIPT_DENYLIST)] == SCRIPT_DENYLIST

    def test_manual_only_pattern(self) -> None:
        """Test a pattern only the manual list blocks."""
        code = "name = input()\nreturn name"

        assert SecurityGate().check(code).safe
        verdict = check_manual_script(code)
        assert not verdict.safe
        assert verdict.message.startswith(
            "Security: Code contains potentially dangerous pattern:"
        )

    def test_length_limit(self) -> None:
        verdict = check_manual_script("x" * 50_001)

        assert not verdict.safe
        assert "maximum length" in verdict.message

    def test_safe_manual_script(self) -> None:
        assert check_manual_script("return len(data)").safe
