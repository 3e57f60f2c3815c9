"""Detection of executable script blocks in streamed model output."""

import hashlib
import logging
import re

from ..config import SandboxConfig
from ..core.types import DelimiterKind, ScriptBlock
from .validator import Validator, clean_markers

logger = logging.getLogger(__name__)


# ```lang\n ... ``` ; an unterminated fence runs to the end of the text
FENCED_BLOCK_RE = re.compile(
    r"```(?:([\w+-]+)[ \t]*\n|[ \t]*\n?)(.*?)(```|\Z)", re.DOTALL
)
TAGGED_BLOCK_RE = re.compile(r"<execute>(.*?)(</execute>|\Z)", re.DOTALL | re.IGNORECASE)
COMPLETE_FENCE_RE = re.compile(r"```([\w+-]*)[ \t]*\n(.*?)```", re.DOTALL)

RESULT_MARKER_AFTER_RE = re.compile(
    r"^\s*(?:\n\s*){0,3}\*\*Code Execution (?:Result|Error)\*\*", re.IGNORECASE
)
RESULT_MARKER_BEFORE_RE = re.compile(
    r"\*\*Code Execution (?:Result|Error)\*\*[^\n]*\n\s*(?:```[\w-]*\s*)?$", re.IGNORECASE
)

ERROR_TRANSCRIPT_PATTERNS: list[re.Pattern] = [
    re.compile(r"Stack Trace:", re.IGNORECASE),
    re.compile(r"Traceback \(most recent call last\):"),
    re.compile(r"^\s*File \"[^\"]+\", line \d+", re.MULTILINE),
    re.compile(r"(?:\w*Error|Exception):\s*[^\n]+\n\s+at\s+", re.IGNORECASE),
]

# An assignment interrupted by a stray fence marker
BROKEN_BLOCK_RE = re.compile(
    r"\b[A-Za-z_]\w*\s*=\s*[^\n`]*?`{2,}(?:python|py|execute|code)", re.IGNORECASE
)

# Labels that map to the default script language
LABEL_ALIASES = {"execute": "python", "code": "python", "py": "python", "python3": "python"}

# Fenced output that is never meant to run
NON_EXECUTABLE_LABELS = frozenset(
    {"json", "text", "txt", "output", "csv", "markdown", "md", "bash", "sh", "shell", "console"}
)


def _normalize(code: str) -> str:
    return re.sub(r"\s+", " ", code).strip()


def fingerprint(code: str) -> str:
    """Near-exact duplicate key: head, tail, length and line count."""
    normalized = _normalize(code)
    line_count = code.count("\n")
    if len(normalized) > 200:
        key = f"{normalized[:100]}...{normalized[-100:]}|{len(normalized)}|lines:{line_count}"
    else:
        key = f"{normalized}|{len(normalized)}|lines:{line_count}"
    return hashlib.sha1(key.encode("utf-8")).hexdigest()


class BlockDetector:
    """
    Finds candidate scripts in the accumulated text of one model turn.

    Blocks that already ran, that are part of a rendered error, that are too
    short, that are not data scripts, or that repeat an earlier block are
    dropped. The result is ordered by position and never overlaps.
    """

    def __init__(
        self,
        config: SandboxConfig | None = None,
        validator: Validator | None = None,
    ):
        self.config = config or SandboxConfig()
        self.validator = validator or Validator(
            min_length=self.config.min_block_length,
            bracket_tolerance=self.config.bracket_tolerance,
        )

    def detect(self, text: str) -> list[ScriptBlock]:
        """
        Detect executable blocks in text.

        Args:
            text: Full accumulated model output so far

        Returns:
            Blocks ordered by start offset
        """
        blocks: list[ScriptBlock] = []
        seen: set[str] = set()
        fenced_spans: list[tuple[int, int]] = []

        for match in FENCED_BLOCK_RE.finditer(text):
            start, end = match.span()
            if start == end:
                continue
            fenced_spans.append((start, end))

            label = match.group(1).lower() if match.group(1) else None
            label = LABEL_ALIASES.get(label, label)
            code = clean_markers(match.group(2).strip()).strip()

            if label in NON_EXECUTABLE_LABELS:
                logger.debug(f"[DETECT] Skipping {label} block at {start}")
                continue
            if self._suppressed(text, start, end, code):
                continue

            block = ScriptBlock(
                raw_code=code,
                delimiter_kind=DelimiterKind.FENCED,
                declared_label=label,
                start_offset=start,
                end_offset=end,
                is_complete=bool(match.group(3)),
            )
            self._accept(block, blocks, seen)

        for match in TAGGED_BLOCK_RE.finditer(text):
            start, end = match.span()
            if any(start < s_end and s_start < end for s_start, s_end in fenced_spans):
                logger.debug(f"[DETECT] Tagged block at {start} overlaps a fenced block")
                continue
            if self._already_executed(text, end):
                continue

            code = clean_markers(match.group(1).strip())
            code = re.sub(r"`{3,}", "", code).strip()
            block = ScriptBlock(
                raw_code=code,
                delimiter_kind=DelimiterKind.TAGGED,
                declared_label="execute",
                start_offset=start,
                end_offset=end,
                is_complete=bool(match.group(2)),
            )
            self._accept(block, blocks, seen)

        if not blocks:
            recovered = self._recover_broken_block(text)
            if recovered is not None:
                blocks.append(recovered)

        blocks.sort(key=lambda b: b.start_offset)
        logger.info(f"[DETECT] {len(blocks)} block(s) detected")
        return blocks

    def _already_executed(self, text: str, end: int) -> bool:
        after = text[end : end + self.config.result_marker_window]
        if RESULT_MARKER_AFTER_RE.search(after):
            logger.info(f"[DETECT] Skipping already-executed block ending at {end}")
            return True
        return False

    def _suppressed(self, text: str, start: int, end: int, code: str) -> bool:
        if self._already_executed(text, end):
            return True

        before = text[max(0, start - self.config.error_marker_window) : start]
        if RESULT_MARKER_BEFORE_RE.search(before):
            logger.info(f"[DETECT] Skipping block at {start}: part of a rendered result")
            return True

        if len(code) < self.config.error_transcript_max_length and any(
            p.search(code) for p in ERROR_TRANSCRIPT_PATTERNS
        ):
            logger.info(f"[DETECT] Skipping block at {start}: looks like an error transcript")
            return True

        return False

    def _accept(self, block: ScriptBlock, blocks: list[ScriptBlock], seen: set[str]) -> bool:
        classification = self.validator.classify(block.raw_code)
        if not classification.accepted:
            logger.info(
                f"[DETECT] Skipping block at {block.start_offset}: "
                f"{classification.verdict.value} ({classification.reason})"
            )
            return False

        if any(block.overlaps(existing) for existing in blocks):
            logger.warning(f"[DETECT] Overlapping block at {block.start_offset}, skipping")
            return False

        key = fingerprint(block.raw_code)
        normalized = _normalize(block.raw_code)
        if key in seen or any(_normalize(b.raw_code) == normalized for b in blocks):
            logger.warning(f"[DETECT] Duplicate block at {block.start_offset}, skipping")
            return False

        seen.add(key)
        blocks.append(block)
        logger.debug(
            f"[DETECT] Block {len(blocks)} accepted: {block.delimiter_kind.value}, "
            f"{len(block.raw_code)} chars, complete={block.is_complete}"
        )
        return True

    def _recover_broken_block(self, text: str) -> ScriptBlock | None:
        """Salvage the last complete block before a statement broken by stray backticks."""
        broken = BROKEN_BLOCK_RE.search(text)
        if broken is None:
            return None

        last = None
        for match in COMPLETE_FENCE_RE.finditer(text, 0, broken.start()):
            last = match

        if last is not None:
            start, end = last.span()
            label = last.group(1).lower() or None
            label = LABEL_ALIASES.get(label, label)
            code = clean_markers(last.group(2).strip()).strip()
            if (
                label not in NON_EXECUTABLE_LABELS
                and not self._suppressed(text, start, end, code)
                and self.validator.is_data_script(code)
            ):
                logger.warning(f"[DETECT] Recovered block at {start} before broken code")
                return ScriptBlock(
                    raw_code=code,
                    delimiter_kind=DelimiterKind.FENCED,
                    declared_label=label,
                    start_offset=start,
                    end_offset=end,
                    is_complete=True,
                )

        logger.warning(
            f"[DETECT] Broken code block at {broken.start()} could not be recovered"
        )
        return None


def extract_code_blocks(text: str) -> list[str]:
    """Return the code of every executable block in text."""
    return [block.raw_code for block in BlockDetector().detect(text)]


def has_code_execution_request(text: str) -> bool:
    """Check whether text contains at least one executable block."""
    return bool(BlockDetector().detect(text))
