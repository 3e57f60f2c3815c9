"""Executor configuration."""

import os
from dataclasses import asdict, dataclass, field
from typing import Any

from dotenv import load_dotenv


@dataclass
class SandboxConfig:
    """
    Configuration for the script execution engine.

    Defines limits, sentinels and detection windows. All values are static
    for the lifetime of an executor.
    """

    time_limit: float = 30.0  # seconds
    allowed_modules: list[str] = field(
        default_factory=lambda: [
            "math",
            "statistics",
            "json",
            "datetime",
            "collections",
            "itertools",
            "functools",
            "re",
            "pandas",
        ]
    )
    max_output_length: int = 10 * 1024  # 10KB of captured print output
    min_block_length: int = 10
    max_manual_code_length: int = 50_000
    data_alias: str = "csv_data"
    result_key: str = "result"
    null_sentinel: str = "(null)"
    select_all_sentinel: str = "__SELECT_ALL__"
    result_marker_window: int = 50
    error_marker_window: int = 200
    error_transcript_max_length: int = 500
    bracket_tolerance: int = 5
    default_sql_table: str = "combined_dvw"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data["allowed_modules"] = list(self.allowed_modules)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SandboxConfig":
        """Create from dictionary."""
        return cls(**data)

    @classmethod
    def from_env(cls) -> "SandboxConfig":
        """
        Build a config from environment variables (and a `.env` file).

        Recognised variables: SANDBOX_TIME_LIMIT, SANDBOX_MAX_OUTPUT_LENGTH,
        SANDBOX_ALLOWED_MODULES (comma separated), SANDBOX_DEFAULT_SQL_TABLE.
        """
        load_dotenv()
        config = cls()

        if os.getenv("SANDBOX_TIME_LIMIT"):
            config.time_limit = float(os.environ["SANDBOX_TIME_LIMIT"])
        if os.getenv("SANDBOX_MAX_OUTPUT_LENGTH"):
            config.max_output_length = int(os.environ["SANDBOX_MAX_OUTPUT_LENGTH"])
        if os.getenv("SANDBOX_ALLOWED_MODULES"):
            config.allowed_modules = [
                m.strip()
                for m in os.environ["SANDBOX_ALLOWED_MODULES"].split(",")
                if m.strip()
            ]
        if os.getenv("SANDBOX_DEFAULT_SQL_TABLE"):
            config.default_sql_table = os.environ["SANDBOX_DEFAULT_SQL_TABLE"]

        return config
