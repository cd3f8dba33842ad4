"""
security.py — Authentication Utilities (Password Hashing & JWT Encoding)

Purpose:
- Hash & verify passwords and password-reset secrets (never store raw values).
- Issue and validate JWT access tokens carrying a user id.
- Generate high-entropy password-reset secrets.

Key Constraints:
- Access tokens only (no refresh tokens).
- Authentication is stateless — a token stays valid until it expires.
- bcrypt cost is fixed per hasher: 12 for passwords, 10 for reset secrets
  (the reset secret is already 256 bits of randomness).

This module does NOT:
- Define API routes → app/api/v1/auth.py
- Query the database → app/services/repositories/*
- Decide what a failed verification means for a request → app/services/*
"""

import datetime
import secrets
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext


# -----------------------------------------------------------------------------
# Password Hashing
# -----------------------------------------------------------------------------

class PasswordHasher:
    """
    bcrypt hasher with a fixed cost factor.

    verify() only answers "does it match"; a stored value that is not a
    bcrypt hash raises ValueError from passlib and is left to propagate.
    """

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, plaintext: str) -> str:
        """
        Hash a plaintext value using bcrypt.
        """
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, hashed: str) -> bool:
        """
        Verify that a plaintext value matches its hashed stored version.
        """
        return self._context.verify(plaintext, hashed)


def generate_reset_secret(num_bytes: int = 32) -> str:
    """
    Random password-reset secret, hex encoded (64 characters for 32 bytes).
    """
    if num_bytes < 32:
        raise ValueError("Reset secrets need at least 32 random bytes")
    return secrets.token_hex(num_bytes)


# -----------------------------------------------------------------------------
# JWT Token Handling
# -----------------------------------------------------------------------------

class TokenError(Exception):
    """Base class for bearer token verification failures."""


class MalformedTokenError(TokenError):
    """Signature check failed or the token could not be parsed."""


class ExpiredTokenError(TokenError):
    """The token's `exp` claim is in the past."""


class TokenService:
    """
    Issue and verify signed bearer tokens.

    Payload format:
        {"sub": <user id>, "iat": <issued at>, "exp": <expiry>}
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 1440):
        if not secret_key:
            raise ValueError("A signing secret is required to issue or verify tokens")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def issue(self, subject_id: str, expires_delta: Optional[datetime.timedelta] = None) -> str:
        """
        Create a JWT access token for a user id.

        Returns:
            Encoded JWT string.
        """
        issued_at = datetime.datetime.now(datetime.timezone.utc)
        if expires_delta is None:
            expires_delta = datetime.timedelta(minutes=self.expire_minutes)

        to_encode: Dict[str, Any] = {
            "sub": subject_id,
            "iat": issued_at,
            "exp": issued_at + expires_delta,
        }
        return jwt.encode(to_encode, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Optional[str]:
        """
        Decode and validate a JWT token, returning its subject.

        Raises:
            ExpiredTokenError: the token's expiry has passed.
            MalformedTokenError: bad signature, bad structure or bad claims.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise ExpiredTokenError(str(exc)) from exc
        except JWTError as exc:
            raise MalformedTokenError(str(exc)) from exc
        return payload.get("sub")
