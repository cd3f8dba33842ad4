"""
auth_service.py — Registration, Login & Password Recovery

Purpose:
- Implement the four credential flows on top of the user repository, the
  password hashers and the token service:
    * register         → new user + bearer token
    * login            → bearer token
    * forgot_password  → one outstanding reset secret per user (1h window)
    * reset_password   → new password, reset secret consumed
- Raise typed operational errors; the API layer never inspects results to
  decide on failures.

Input shape (email syntax, password length) is validated by the request
schemas in app/api/v1/auth.py before any of these methods run.

Enumeration resistance:
- login answers "unknown email" and "wrong password" with the same error.
- forgot_password answers "unknown email" exactly like a successful request,
  minus the secret.
- reset_password answers "no active token" and "wrong secret" with the same error.
"""

import datetime
from dataclasses import dataclass
from typing import Callable, Optional

from app.core.errors import (
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidOrExpiredResetTokenError,
)
from app.core.logging import get_logger
from app.core.security import PasswordHasher, TokenService, generate_reset_secret
from app.models.user import User, utcnow
from app.services.repositories.user_repository import DuplicateRecordError, UserRepository

logger = get_logger(__name__)


@dataclass
class AuthSession:
    """A user together with a freshly issued bearer token."""
    user: User
    token: str


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        password_hasher: PasswordHasher,
        reset_token_hasher: PasswordHasher,
        tokens: TokenService,
        reset_token_ttl: datetime.timedelta = datetime.timedelta(hours=1),
        reset_token_bytes: int = 32,
        clock: Callable[[], datetime.datetime] = utcnow,
    ):
        self._users = users
        self._password_hasher = password_hasher
        self._reset_token_hasher = reset_token_hasher
        self._tokens = tokens
        self._reset_token_ttl = reset_token_ttl
        self._reset_token_bytes = reset_token_bytes
        self._clock = clock

    # -------------------------------------------------------------------------
    # Register / Login
    # -------------------------------------------------------------------------

    def register(self, email: str, password: str, name: Optional[str] = None) -> AuthSession:
        if self._users.find_by_email(email) is not None:
            raise DuplicateEmailError()

        password_hash = self._password_hasher.hash(password)
        try:
            user = self._users.create(email=email, password_hash=password_hash, name=name)
        except DuplicateRecordError:
            # Lost a race with a concurrent registration for the same email
            raise DuplicateEmailError()

        logger.info("Registered user %s", user.id)
        return AuthSession(user=user, token=self._tokens.issue(user.id))

    def login(self, email: str, password: str) -> AuthSession:
        user = self._users.find_by_email(email)

        # Same error for both branches
        if user is None:
            logger.info("Login rejected")
            raise InvalidCredentialsError()
        if not self._password_hasher.verify(password, user.password_hash):
            logger.info("Login rejected")
            raise InvalidCredentialsError()

        return AuthSession(user=user, token=self._tokens.issue(user.id))

    # -------------------------------------------------------------------------
    # Password Recovery
    # -------------------------------------------------------------------------

    def forgot_password(self, email: str) -> Optional[str]:
        """
        Start a password reset.

        Returns the plaintext reset secret, or None when no user has this email.
        Any previously outstanding secret for the user is replaced.
        """
        user = self._users.find_by_email(email)
        if user is None:
            return None

        secret = generate_reset_secret(self._reset_token_bytes)
        self._users.update(
            user,
            reset_token_hash=self._reset_token_hasher.hash(secret),
            reset_token_expiry=self._clock() + self._reset_token_ttl,
        )
        logger.info("Password reset requested for user %s", user.id)
        return secret

    def reset_password(self, secret: str, new_password: str) -> None:
        """
        Finish a password reset. The secret is single-use; no bearer token is
        issued, so the user has to log in again with the new password.
        """
        # Secrets are stored hashed, so each active candidate has to be checked
        user = next(
            (
                candidate
                for candidate in self._users.find_with_active_reset_token(self._clock())
                if self._reset_token_hasher.verify(secret, candidate.reset_token_hash)
            ),
            None,
        )
        if user is None:
            raise InvalidOrExpiredResetTokenError()

        expected_hash = user.reset_token_hash

        consumed = self._users.consume_reset_token(
            user_id=user.id,
            expected_hash=expected_hash,
            password_hash=self._password_hasher.hash(new_password),
        )
        if not consumed:
            raise InvalidOrExpiredResetTokenError()

        logger.info("Password reset completed for user %s", user.id)
