"""Loguru sink setup shared by the worker and the API process."""
from __future__ import annotations

import sys

from loguru import logger


def configure_logging(level: str = "INFO", *, serialize: bool = False) -> None:
    """Replace the default sink. serialize=True emits one JSON object per line (bound fields included)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        serialize=serialize,
        backtrace=False,
        diagnose=False,
    )
