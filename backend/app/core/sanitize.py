"""
sanitize.py — Request String Sanitization

Purpose:
- Free text (names, todo titles and descriptions) is stored and later
  rendered by the browser client, so NUL bytes are removed and HTML is
  cleaned with nh3 before it reaches a service.
- Secrets (passwords, reset tokens) are never rewritten: a changed password
  would silently stop matching. A NUL byte in a secret is rejected instead,
  because bcrypt refuses to hash one.

Usage in request schemas:
    title: CleanText
    password: Secret = Field(..., min_length=6)
"""

from typing import Annotated

import nh3
from pydantic import AfterValidator
from pydantic_core import PydanticCustomError

NUL = "\x00"


def clean_text(value: str) -> str:
    """Drop NUL bytes and unsafe markup (scripts, event handlers, javascript: URLs)."""
    return nh3.clean(value.replace(NUL, ""))


def require_text(value: str) -> str:
    # Runs after clean_text: "<script>x</script>" cleans down to nothing
    if not value.strip():
        raise PydanticCustomError("text_empty", "must not be empty")
    return value


def reject_nul(value: str) -> str:
    if NUL in value:
        raise PydanticCustomError("nul_byte", "must not contain null bytes")
    return value


CleanText = Annotated[str, AfterValidator(clean_text)]
NonEmptyText = Annotated[str, AfterValidator(clean_text), AfterValidator(require_text)]
Secret = Annotated[str, AfterValidator(reject_nul)]
