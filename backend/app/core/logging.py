"""
logging.py — Application-Wide Logging Configuration

Purpose:
- Configure a standardized logging format for the entire backend.
- Keep auth events, request failures and startup messages in one format.
- Scrub credentials from log output before it reaches a handler.

Conventions:
- Uniform formatting: timestamp | level | module | message
- Never log passwords, reset secrets or bearer tokens. Modules log user ids
  instead; RedactingFilter is the backstop for anything that slips through
  (e.g. a driver error echoing a query parameter).
"""

import logging
import re
from typing import Pattern, Tuple

# -----------------------------------------------------------------------------
# Log Format
# -----------------------------------------------------------------------------

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
)

# -----------------------------------------------------------------------------
# Credential Redaction
# -----------------------------------------------------------------------------

_REDACTIONS: Tuple[Tuple[Pattern[str], str], ...] = (
    # Authorization header values
    (re.compile(r"(Bearer\s+)[A-Za-z0-9\-_.~+/=]+", re.IGNORECASE), r"\1[REDACTED]"),
    # Bare JWTs (base64url JSON header always starts with "eyJ")
    (re.compile(r"\beyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]*"), "[REDACTED_TOKEN]"),
    # Password-reset secrets: 32+ random bytes, hex encoded
    (re.compile(r"\b[0-9a-fA-F]{64,}\b"), "[REDACTED_SECRET]"),
)


def redact(text: str) -> str:
    """Replace bearer tokens and reset secrets in `text`."""
    if not text:
        return text
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


class RedactingFilter(logging.Filter):
    """
    Handler filter that rewrites a record's message when it contains a
    credential. The record is rendered once here, so `args` are dropped.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = redact(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True

# -----------------------------------------------------------------------------
# Root Logger Initialization
# -----------------------------------------------------------------------------

def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging settings.

    Parameters:
        level (str): "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"

    Behavior:
    - Sets logging format globally.
    - Ensures logs stream to stderr (Uvicorn picks this up).
    - Attaches RedactingFilter to every root handler.
    - Called from create_app(); repeated calls are no-ops because
      basicConfig leaves an already configured root logger alone.
    """

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )

    # Filters on handlers also see records propagated from child loggers
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(RedactingFilter())

    logging.getLogger(__name__).debug("Logging initialized with level %s", level)

# -----------------------------------------------------------------------------
# Logger Access Helper
# -----------------------------------------------------------------------------

def get_logger(name: str) -> logging.Logger:
    """
    Return a logger instance to be used in any module.

    In any module:
        from app.core.logging import get_logger
        logger = get_logger(__name__)
        logger.info("something happened")
    """
    return logging.getLogger(name)
