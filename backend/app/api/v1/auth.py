"""
auth.py — Authentication and Credential Recovery Endpoints (API Layer)

Purpose:
- Defines HTTP endpoints for registration, login and password recovery.
- Validates request bodies (email syntax, password length, no NUL bytes in
  secrets, HTML-cleaned display names) before any database access; FastAPI
  turns schema failures into 400 responses through the central handlers in
  core/errors.py.
- Delegates every decision to services/auth_service.py.

This file should be thin — minimal logic. Do NOT implement hashing or DB lookups here.
"""

from datetime import datetime
from typing import Annotated, Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Depends, status
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from app.api.deps import get_auth_service
from app.core.sanitize import NonEmptyText, Secret
from app.services.auth_service import AuthService

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)

MIN_PASSWORD_LENGTH = 6

REGISTER_SUCCESS_MESSAGE = "User registered successfully"
LOGIN_SUCCESS_MESSAGE = "Login successful"
RESET_LINK_SENT_MESSAGE = "Reset link has been sent"
RESET_SUCCESS_MESSAGE = "Password reset successful"


def _check_email(value: str) -> str:
    # Syntax only; the address is stored exactly as given (case preserved)
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise PydanticCustomError("email_invalid", "must be a valid email address")
    return value


Email = Annotated[str, AfterValidator(_check_email)]

# -----------------------------------------------------------------------------
# Request / Response Schemas
# -----------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    """
    Schema for register POST.
    - `email`: Login email, unique per user.
    - `password`: Raw password, at least 6 characters.
    - `name`: Optional display name, HTML-cleaned.
    """
    email: Email
    password: Secret = Field(..., min_length=MIN_PASSWORD_LENGTH)
    name: Optional[NonEmptyText] = None


class LoginRequest(BaseModel):
    """
    Schema for login POST.
    - `email`: User's login email.
    - `password`: Raw password supplied by the user.
    """
    email: Email
    password: Secret = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: Email


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: Secret = Field(..., min_length=1)
    new_password: Secret = Field(..., alias="newPassword", min_length=MIN_PASSWORD_LENGTH)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserSummary(CamelModel):
    id: str
    email: str
    name: Optional[str] = None


class RegisteredUser(UserSummary):
    created_at: datetime


class RegisterResponse(CamelModel):
    message: str
    user: RegisteredUser
    token: str


class LoginResponse(CamelModel):
    message: str
    user: UserSummary
    token: str


class ForgotPasswordResponse(CamelModel):
    message: str
    reset_token: Optional[str] = None


class MessageResponse(CamelModel):
    message: str


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    """
    POST /auth/register

    Flow:
    1. Reject an email that is already registered (400).
    2. Hash the password, create the user, issue a bearer token.
    """
    session = auth.register(payload.email, payload.password, payload.name)
    return RegisterResponse(
        message=REGISTER_SUCCESS_MESSAGE,
        user=RegisteredUser(
            id=session.user.id,
            email=session.user.email,
            name=session.user.name,
            created_at=session.user.created_at,
        ),
        token=session.token,
    )


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    """
    POST /auth/login

    Unknown email and wrong password both return 400 "Invalid email or password".
    """
    session = auth.login(payload.email, payload.password)
    return LoginResponse(
        message=LOGIN_SUCCESS_MESSAGE,
        user=UserSummary(id=session.user.id, email=session.user.email, name=session.user.name),
        token=session.token,
    )


@router.post(
    "/forgot-password",
    response_model=ForgotPasswordResponse,
    response_model_exclude_none=True,
)
def forgot_password(payload: ForgotPasswordRequest, auth: AuthService = Depends(get_auth_service)):
    """
    POST /auth/forgot-password

    Always answers with the same message. The reset secret is only included
    when the email belongs to a user.

    NOTE: returning the secret in the response body stands in for delivering
    it out of band; a real deployment sends it by email instead.
    """
    secret = auth.forgot_password(payload.email)
    return ForgotPasswordResponse(message=RESET_LINK_SENT_MESSAGE, reset_token=secret)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(payload: ResetPasswordRequest, auth: AuthService = Depends(get_auth_service)):
    """
    POST /auth/reset-password

    Consumes the reset secret. No bearer token is returned; the client logs
    in again with the new password.
    """
    auth.reset_password(payload.token, payload.new_password)
    return MessageResponse(message=RESET_SUCCESS_MESSAGE)
