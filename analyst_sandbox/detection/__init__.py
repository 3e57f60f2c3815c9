"""Detection and classification of scripts in model output."""

from .blocks import BlockDetector, extract_code_blocks, fingerprint, has_code_execution_request
from .validator import (
    APPROVED_CLOSING_SHAPES,
    DATA_PATTERNS,
    FOREIGN_PATTERNS,
    TYPO_CORRECTIONS,
    Validator,
    apply_typo_corrections,
    clean_markers,
    scan_literals,
)

__all__ = [
    "BlockDetector",
    "extract_code_blocks",
    "fingerprint",
    "has_code_execution_request",
    "APPROVED_CLOSING_SHAPES",
    "DATA_PATTERNS",
    "FOREIGN_PATTERNS",
    "TYPO_CORRECTIONS",
    "Validator",
    "apply_typo_corrections",
    "clean_markers",
    "scan_literals",
]
