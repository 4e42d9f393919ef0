"""
Loguru configuration for the API process.

Human-readable lines in development, one JSON object per line in prod so the
structured fields (owner_id, receipt_id, stage, ...) survive log shipping.
"""

import sys
from loguru import logger
from .config import settings

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level> | {extra}"
)


def setup_logging(level: str | None = None):
    """Replace loguru's default sink and return the configured logger"""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.log_level).upper(),
        format=_FORMAT,
        serialize=settings.app_env == "prod",
        backtrace=False,
        diagnose=False,
    )
    return logger
