"""One-line human-readable status updates for benchmark operations."""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ReportSink = Callable[[str], None]


def format_report(label: str, count: int, elapsed_ms: float) -> str:
    """Render ``"<label> :: for <count> contacts took <ms> milliseconds"``."""
    return f"{label} :: for {count} contacts took {round(elapsed_ms)} milliseconds"


def log_sink(line: str) -> None:
    """Sink that forwards report lines to the module logger."""
    logger.info(line)
