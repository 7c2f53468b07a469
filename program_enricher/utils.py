"""
Utility functions for the Program Enricher pipeline.

This module provides:
- Central logging configuration
- Pipeline settings resolved once from the environment
- Shared text helpers used across modules
"""

import logging
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


# Default configuration values
DEFAULT_URL_MAPPING_PATH = "config/url_mapping.json"
DEFAULT_OUTPUT_DIR = "data"
DEFAULT_OUTPUT_PREFIX = "external_competitors"
DEFAULT_ROSTER_PATH = "data/pilot_competitor_list.csv"

ENRICH_MODE_PER_RECORD = "per-record"
ENRICH_MODE_BULK = "bulk"


@dataclass
class EnricherSettings:
    """
    Runtime settings for a single enrichment run.

    Resolved once at process start and passed explicitly to the resolver,
    fetcher, orchestrator and writer.

    Attributes:
        url_mapping_path: JSON file holding the institution/program/URL table.
        output_dir: Directory receiving the JSON and CSV artifacts.
        output_prefix: File name prefix for every artifact.
        roster_path: Roster CSV read by the command line entry point.
        request_timeout: Timeout in seconds for the direct HTTP fetch.
        navigation_timeout_ms: Ceiling for the browser network-idle wait.
        settle_delay_ms: Fixed wait after navigation for client-side rendering.
        record_delay_ms: Politeness delay between per-record requests.
        bulk_delay_ms: Politeness delay between bulk-mode requests.
        mode: Either "per-record" or "bulk".
    """
    url_mapping_path: Path = Path(DEFAULT_URL_MAPPING_PATH)
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    output_prefix: str = DEFAULT_OUTPUT_PREFIX
    roster_path: Path = Path(DEFAULT_ROSTER_PATH)
    request_timeout: float = 15.0
    navigation_timeout_ms: int = 30000
    settle_delay_ms: int = 2000
    record_delay_ms: int = 1000
    bulk_delay_ms: int = 2500
    mode: str = ENRICH_MODE_PER_RECORD

    @property
    def record_delay_seconds(self) -> float:
        return self.record_delay_ms / 1000.0

    @property
    def bulk_delay_seconds(self) -> float:
        return self.bulk_delay_ms / 1000.0

    @classmethod
    def from_env(cls) -> "EnricherSettings":
        """
        Build settings from environment variables, falling back to defaults.

        Returns:
            EnricherSettings instance.
        """
        logger = get_logger("utils")

        mode = (get_env_var("ENRICH_MODE", required=False) or ENRICH_MODE_PER_RECORD).lower()
        if mode not in (ENRICH_MODE_PER_RECORD, ENRICH_MODE_BULK):
            logger.warning(f"Unknown ENRICH_MODE '{mode}', using {ENRICH_MODE_PER_RECORD}")
            mode = ENRICH_MODE_PER_RECORD

        return cls(
            url_mapping_path=Path(
                get_env_var("URL_MAPPING_PATH", required=False, default=DEFAULT_URL_MAPPING_PATH)
            ),
            output_dir=Path(
                get_env_var("OUTPUT_DIR", required=False, default=DEFAULT_OUTPUT_DIR)
            ),
            output_prefix=get_env_var(
                "OUTPUT_PREFIX", required=False, default=DEFAULT_OUTPUT_PREFIX
            ),
            roster_path=Path(
                get_env_var("ROSTER_PATH", required=False, default=DEFAULT_ROSTER_PATH)
            ),
            request_timeout=_env_number("REQUEST_TIMEOUT", 15.0, float),
            navigation_timeout_ms=_env_number("NAVIGATION_TIMEOUT_MS", 30000, int),
            settle_delay_ms=_env_number("SETTLE_DELAY_MS", 2000, int),
            record_delay_ms=_env_number("RECORD_DELAY_MS", 1000, int),
            bulk_delay_ms=_env_number("BULK_DELAY_MS", 2500, int),
            mode=mode,
        )


def _env_number(name: str, default, cast):
    """Read a numeric environment variable, keeping the default when malformed."""
    raw = get_env_var(name, required=False)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        get_logger("utils").warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default
    if value < 0:
        get_logger("utils").warning(f"Negative value for {name}: {raw!r}, using {default}")
        return default
    return value


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure and return the root logger for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to INFO.

    Returns:
        Configured logger instance.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    logger = logging.getLogger("program_enricher")
    logger.setLevel(log_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Name for the logger, typically the module name.

    Returns:
        Logger instance configured as a child of the main application logger.
    """
    return logging.getLogger(f"program_enricher.{name}")


def get_env_var(name: str, required: bool = True, default: Optional[str] = None) -> Optional[str]:
    """
    Get an environment variable with optional requirement enforcement.

    Args:
        name: Name of the environment variable.
        required: If True, raises ValueError when variable is not set.
                  Defaults to True.
        default: Default value if variable is not set and not required.

    Returns:
        Value of the environment variable or default.

    Raises:
        ValueError: If required=True and the variable is not set.
    """
    value = os.environ.get(name)

    if value is None or value.strip() == "":
        if required:
            raise ValueError(f"Required environment variable '{name}' is not set")
        return default

    return value.strip()


def sanitize_text(text: Optional[str]) -> str:
    """
    Clean and normalize text content.

    Removes extra whitespace, newlines, and normalizes spacing.

    Args:
        text: Raw text to sanitize.

    Returns:
        Cleaned text string.
    """
    if not text:
        return ""

    cleaned = re.sub(r"\s+", " ", text)
    return cleaned.strip()


def capitalize_first(text: str) -> str:
    """Uppercase the first character and lowercase the rest."""
    return text[:1].upper() + text[1:].lower()
