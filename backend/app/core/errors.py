"""
errors.py — Operational Error Types & the Central Error Boundary

Purpose:
- Define the typed, operational errors raised wherever a failure is detected
  (validation, credentials, bearer tokens, reset tokens, missing resources).
- Map every error to a status code and JSON body in exactly one place.

Response shape:
    {"error": "<message>"}

Unexpected exceptions are answered with a generic 500 body; the full detail
(message, traceback, method, path, timestamp) only goes to the server log.

Handlers and services never build error responses themselves — they raise.
"""

import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.logging import get_logger

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


# -----------------------------------------------------------------------------
# Error Types
# -----------------------------------------------------------------------------

class AppError(Exception):
    """
    Base class for anticipated (operational) failures.

    Subclasses set a default status code and message; both can be overridden
    per instance.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = INTERNAL_ERROR_MESSAGE
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class DuplicateEmailError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "User already exists with this email"


class InvalidCredentialsError(AppError):
    # 400, not 401: 401 is reserved for token problems
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid email or password"


class InvalidOrExpiredResetTokenError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid or expired reset token"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"
    headers = {"WWW-Authenticate": "Bearer"}


class AccessTokenRequiredError(AuthenticationError):
    message = "Access token required"


class InvalidOrExpiredTokenError(AuthenticationError):
    message = "Invalid or expired token"


class InvalidTokenError(AuthenticationError):
    message = "Invalid token"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class PayloadTooLargeError(AppError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    message = "Request entity too large"


class RateLimitExceededError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too many requests, please try again later."

    def __init__(self, retry_after: int, message: Optional[str] = None):
        super().__init__(message)
        self.headers = {"Retry-After": str(max(retry_after, 0))}


# -----------------------------------------------------------------------------
# Error → Response
# -----------------------------------------------------------------------------

def error_response(exc: AppError) -> JSONResponse:
    """Render an operational error. Also used by middleware that runs outside the routers."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=exc.headers,
    )


def describe_validation_errors(errors: List[Dict[str, Any]]) -> str:
    """
    Turn pydantic's error list into one message naming the offending field.

    Only the first error is reported:
        ("body", "email") / missing        -> "email is required"
        ("body", "password") / too short   -> "password: String should have at least 6 characters"
    """
    if not errors:
        return ValidationError.message

    error = errors[0]
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "header")]
    field = ".".join(loc)
    msg = error.get("msg", "is invalid")

    if not field:
        if error.get("type") == "missing":
            return "Request body is required"
        return msg
    if error.get("type") == "missing":
        return f"{field} is required"
    return f"{field}: {msg}"


def _timestamp() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning(
        "%s %s -> %d %s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.message,
    )
    return error_response(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return await app_error_handler(request, ValidationError(describe_validation_errors(exc.errors())))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled %s on %s %s at %s: %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        _timestamp(),
        exc,
        exc_info=exc,
    )
    # Served by the outermost server-error layer, outside the header middleware
    from app.core.middleware import HSTS_HEADER, SECURITY_HEADERS

    headers = dict(SECURITY_HEADERS)
    settings = getattr(request.app.state, "settings", None)
    if settings is not None and settings.is_production:
        headers["Strict-Transport-Security"] = HSTS_HEADER

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR_MESSAGE},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
