"""Purpose classification and completeness checks for candidate scripts.

Classification decides whether a block is meant to be executed at all;
completeness decides whether an accepted block was cut off mid-stream and
needs a continuation from the model.
"""

import logging
import re

from ..core.types import Classification, CodeValidation, Verdict

logger = logging.getLogger(__name__)


# Idioms from other ecosystems; any match rejects the block outright
FOREIGN_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("javascript", re.compile(r"^\s*(?:const|let|var)\s+[\w$]+\s*=", re.MULTILINE)),
    ("javascript", re.compile(r"=>")),
    ("javascript", re.compile(r"\bconsole\.log\s*\(")),
    ("javascript", re.compile(r"===|!==")),
    ("javascript", re.compile(r"\bfunction\s*[\w$]*\s*\([^)]*\)\s*\{")),
    ("javascript", re.compile(r"\.forEach\s*\(")),
    ("javascript", re.compile(r"\.length\b(?!\s*\()")),
    ("javascript", re.compile(r"\brequire\s*\(")),
    ("javascript", re.compile(r"\bawait\s+query\s*\(")),
    ("r", re.compile(r"^\s*[\w.]+\s*<-\s*\S", re.MULTILINE)),
    ("r", re.compile(r"\blibrary\s*\(")),
    ("r", re.compile(r"%>%")),
]

# Signals that a block reads the bound data; at least one must match
DATA_PATTERNS: list[re.Pattern] = [
    re.compile(r"\bdata\s*\["),
    re.compile(r"\bcsv_data\b"),
    re.compile(r"\bsummary\s*[\[.]"),
    re.compile(r"\bquery\s*\("),
    re.compile(r"\b(?:len|sum|min|max|sorted|set|list|enumerate)\s*\(\s*(?:data|csv_data)\b"),
    re.compile(r"\bfor\s+[\w\s,()]+\s+in\s+(?:data|csv_data|result|rows)\b"),
    re.compile(r"\bpd\.DataFrame\s*\("),
    re.compile(r"\bSELECT\s+.*?\s+FROM\b", re.IGNORECASE | re.DOTALL),
    re.compile(r"\bdata\b"),
    re.compile(r"\bresult\b"),
    re.compile(r"^\s*return\b", re.MULTILINE),
    re.compile(r"^[A-Za-z_]\w*(?:\s*,\s*[A-Za-z_]\w*)*\s*=(?!=)", re.MULTILINE),
]

# Stray fence markers glued to a language tag, or runs of backticks
_MALFORMED_MARKER_RE = re.compile(r"``+(?:python|py|execute|code|javascript|js)", re.IGNORECASE)
_BACKTICK_RUN_RE = re.compile(r"`{4,}")

# A tail that legitimately ends a triple-quoted string
APPROVED_CLOSING_SHAPES: list[re.Pattern] = [
    re.compile(r"(?:\"\"\"|''')\s*\)*\s*;?\s*(?:\n\s*return\s+[^\n]+)?\s*$"),
]

# Known truncations of common column references
TYPO_CORRECTIONS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\brow\.tea\b"), "row.team"),
    (re.compile(r"\ba\.tea\b"), "a.team"),
    (re.compile(r"\[(['\"])tea\1\]"), r"[\1team\1]"),
]


def clean_markers(code: str) -> str:
    """Remove malformed fence markers left inside a block body."""
    code = _MALFORMED_MARKER_RE.sub("", code)
    return _BACKTICK_RUN_RE.sub("", code)


def apply_typo_corrections(code: str) -> str:
    """Fix known truncated column references."""
    for pattern, replacement in TYPO_CORRECTIONS:
        code = pattern.sub(replacement, code)
    return code


def scan_literals(code: str) -> tuple[str, int]:
    """
    Strip comments and string literals from Python source.

    Returns:
        Tuple of (code with comments and strings removed, number of
        triple-quote delimiters seen outside comments and ordinary strings)
    """
    out: list[str] = []
    triple_count = 0
    i = 0
    n = len(code)

    while i < n:
        ch = code[i]

        if ch == "#":
            while i < n and code[i] != "\n":
                i += 1
            continue

        if ch in "'\"":
            delim = code[i : i + 3]
            if delim in ('"""', "'''"):
                triple_count += 1
                end = code.find(delim, i + 3)
                if end == -1:
                    break
                triple_count += 1
                i = end + 3
                continue

            i += 1
            while i < n and code[i] != ch and code[i] != "\n":
                if code[i] == "\\":
                    i += 1
                i += 1
            i += 1
            continue

        out.append(ch)
        i += 1

    return "".join(out), triple_count


class Validator:
    """Classifies candidate blocks and checks scripts for truncation."""

    def __init__(self, min_length: int = 10, bracket_tolerance: int = 5):
        self.min_length = min_length
        self.bracket_tolerance = bracket_tolerance

    def classify(self, raw_code: str) -> Classification:
        """
        Decide whether a block is an executable data script.

        The foreign-ecosystem check runs first and is authoritative: a block
        that matches it is rejected even if it also reads the bound data.
        """
        code = raw_code.strip()

        for language, pattern in FOREIGN_PATTERNS:
            if pattern.search(code):
                return Classification(
                    Verdict.FOREIGN_LANGUAGE, f"{language} idiom: {pattern.pattern}"
                )

        if len(code) <= self.min_length:
            return Classification(Verdict.TOO_SHORT, f"{len(code)} chars")

        if any(pattern.search(code) for pattern in DATA_PATTERNS):
            return Classification(Verdict.ACCEPT)

        return Classification(Verdict.NOT_A_DATA_SCRIPT, "no data access pattern")

    def is_data_script(self, raw_code: str) -> bool:
        return self.classify(raw_code).accepted

    def validate_code(self, code: str) -> CodeValidation:
        """
        Check a script for signs of truncation.

        Args:
            code: Script body

        Returns:
            CodeValidation; needs_completion is set when the script looks cut
            off and a continuation should be requested instead of running it
        """
        clean = clean_markers(code.strip())
        stripped, triple_count = scan_literals(clean.replace("```", ""))

        if triple_count % 2 != 0:
            if not any(shape.search(clean) for shape in APPROVED_CLOSING_SHAPES):
                return CodeValidation(
                    valid=False,
                    needs_completion=True,
                    error=(
                        "Code appears to have an unterminated triple-quoted string. "
                        "The code block may have been cut off mid-string."
                    ),
                )

        if "```" in clean and not clean.endswith("```"):
            return CodeValidation(
                valid=False,
                needs_completion=True,
                error="Code contains malformed code block markers",
            )

        paren_diff = stripped.count("(") - stripped.count(")")
        brace_diff = stripped.count("{") - stripped.count("}")
        bracket_diff = stripped.count("[") - stripped.count("]")
        tolerance = self.bracket_tolerance

        if (
            abs(paren_diff) > tolerance
            or abs(brace_diff) > tolerance
            or abs(bracket_diff) > tolerance
        ):
            return CodeValidation(
                valid=False,
                needs_completion=True,
                error=(
                    "Code appears truncated - unbalanced brackets "
                    f"(parens: {paren_diff}, braces: {brace_diff}, brackets: {bracket_diff})"
                ),
            )

        return CodeValidation(valid=True)
