"""Logging setup for playdate-client.

Modules log through ``logging.getLogger("playdate_client.<module>")``; this
module attaches the handlers to the package logger.  Console output goes to
stderr because the CLI prints its results (JSON, keys) on stdout.
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path

__all__ = ["RedactSecretsFilter", "logger", "setup_logging"]

logger = logging.getLogger("playdate_client")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_SECRET_PATTERNS = (
    re.compile(r"(Token\s+)[^\s'\",}]+"),
    re.compile(r"""((?:access_token|csrfmiddlewaretoken|password)['"]?\s*[:=]\s*['"]?)[^\s'",}&]+"""),
)


class RedactSecretsFilter(logging.Filter):
    """Masks access tokens, anti-forgery tokens and passwords in log output."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern in _SECRET_PATTERNS:
            redacted = pattern.sub(r"\1***", redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(level: int = logging.INFO, log_file: Path | None = None) -> None:
    """Configure the package logger.

    Calling it again replaces the handlers from the previous call, so the
    level and log file always follow the latest call.

    Args:
        level: Console level. The log file, if any, always records DEBUG.
        log_file: Optional path to a log file.
    """
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(logging.DEBUG if log_file is not None else level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%H:%M:%S")
    redact = RedactSecretsFilter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(redact)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(redact)
        logger.addHandler(file_handler)
