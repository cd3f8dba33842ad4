"""
authenticator.py — Bearer Token → Identity

Per-request gate, terminal on the first failure:
1. Extract   Authorization: Bearer <token>      → AccessTokenRequiredError
2. Verify    signature / expiry                 → InvalidOrExpiredTokenError
3. Resolve   subject id → live user (id, email, name only) → InvalidTokenError
4. Attach    return the Identity for the request

Anything else (e.g. the database being unreachable) propagates unchanged.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from app.core.errors import (
    AccessTokenRequiredError,
    InvalidOrExpiredTokenError,
    InvalidTokenError,
)
from app.core.security import TokenError, TokenService
from app.services.repositories.user_repository import UserRepository

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Identity as JSON; an absent name is omitted rather than sent as null."""
        return {key: value for key, value in asdict(self).items() if value is not None}


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise AccessTokenRequiredError()

    token = authorization[len(BEARER_PREFIX):]
    if not token:
        raise AccessTokenRequiredError()
    return token


class RequestAuthenticator:
    def __init__(self, tokens: TokenService, users: UserRepository):
        self._tokens = tokens
        self._users = users

    def authenticate(self, authorization: Optional[str]) -> Identity:
        token = extract_bearer_token(authorization)

        try:
            subject_id = self._tokens.verify(token)
        except TokenError:
            # Expired and malformed tokens look the same to the client
            raise InvalidOrExpiredTokenError()

        row = self._users.find_identity(subject_id)
        if row is None:
            raise InvalidTokenError()

        return Identity(id=row.id, email=row.email, name=row.name or None)
