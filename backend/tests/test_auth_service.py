"""
Unit tests for services/auth_service.py

Runs the service against a real in-memory database; the clock is injected
so reset-token expiry can be tested without waiting.
"""

import datetime

import pytest

from app.core.errors import (
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidOrExpiredResetTokenError,
)
from app.core.security import PasswordHasher
from app.models.user import User, utcnow
from app.services.auth_service import AuthService
from app.services.repositories.user_repository import DuplicateRecordError, UserRepository


class FrozenClock:
    def __init__(self, now: datetime.datetime):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += datetime.timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(utcnow())


@pytest.fixture
def users(db_session) -> UserRepository:
    return UserRepository(db_session)


@pytest.fixture
def reset_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def service(users, password_hasher, reset_hasher, token_service, clock) -> AuthService:
    return AuthService(
        users=users,
        password_hasher=password_hasher,
        reset_token_hasher=reset_hasher,
        tokens=token_service,
        clock=clock,
    )


# -----------------------------------------------------------------------------
# Register / Login
# -----------------------------------------------------------------------------

def test_register_stores_hash_and_issues_token(service, users, password_hasher, token_service):
    session = service.register("a@example.com", "password123", "Alice")

    stored = users.find_by_email("a@example.com")
    assert stored.id == session.user.id
    assert stored.name == "Alice"
    assert stored.password_hash != "password123"
    assert password_hasher.verify("password123", stored.password_hash)
    assert stored.reset_token_hash is None
    assert stored.reset_token_expiry is None
    assert token_service.verify(session.token) == stored.id


def test_register_without_name(service):
    session = service.register("a@example.com", "password123")

    assert session.user.name is None


def test_register_duplicate_email(service):
    service.register("a@example.com", "password123")

    with pytest.raises(DuplicateEmailError):
        service.register("a@example.com", "different-pw")


def test_register_lost_race_maps_to_duplicate_email(service, users, monkeypatch):
    # The pre-check passes but the unique constraint fires on insert
    monkeypatch.setattr(users, "find_by_email", lambda email: None)

    def _create(**kwargs):
        raise DuplicateRecordError("unique constraint")

    monkeypatch.setattr(users, "create", _create)

    with pytest.raises(DuplicateEmailError):
        service.register("a@example.com", "password123")


def test_email_is_case_sensitive(service):
    service.register("A@example.com", "password123")

    # A different spelling is a different account
    service.register("a@example.com", "password123")
    with pytest.raises(InvalidCredentialsError):
        service.login("a@EXAMPLE.com", "password123")


def test_login_success(service, token_service):
    registered = service.register("a@example.com", "password123")

    session = service.login("a@example.com", "password123")

    assert session.user.id == registered.user.id
    assert token_service.verify(session.token) == registered.user.id


def test_login_unknown_email_and_wrong_password_are_indistinguishable(service):
    service.register("a@example.com", "password123")

    with pytest.raises(InvalidCredentialsError) as unknown:
        service.login("nobody@example.com", "password123")
    with pytest.raises(InvalidCredentialsError) as wrong:
        service.login("a@example.com", "wrong-password")

    assert unknown.value.message == wrong.value.message == "Invalid email or password"
    assert unknown.value.status_code == wrong.value.status_code == 400


# -----------------------------------------------------------------------------
# Forgot Password
# -----------------------------------------------------------------------------

def test_forgot_password_unknown_email_returns_none(service):
    assert service.forgot_password("nobody@example.com") is None


def test_forgot_password_stores_hashed_secret_with_one_hour_expiry(service, users, reset_hasher, clock):
    service.register("a@example.com", "password123")

    secret = service.forgot_password("a@example.com")

    stored = users.find_by_email("a@example.com")
    assert len(secret) == 64
    assert stored.reset_token_hash != secret
    assert reset_hasher.verify(secret, stored.reset_token_hash)
    assert stored.reset_token_expiry == clock.now + datetime.timedelta(hours=1)


def test_reset_secret_hashed_at_reset_cost(users, password_hasher, token_service):
    service = AuthService(
        users=users,
        password_hasher=password_hasher,
        reset_token_hasher=PasswordHasher(rounds=10),
        tokens=token_service,
    )
    service.register("a@example.com", "password123")

    service.forgot_password("a@example.com")

    assert users.find_by_email("a@example.com").reset_token_hash.startswith("$2b$10$")


def test_second_forgot_password_replaces_first(service):
    service.register("a@example.com", "password123")
    first = service.forgot_password("a@example.com")
    second = service.forgot_password("a@example.com")

    assert first != second
    with pytest.raises(InvalidOrExpiredResetTokenError):
        service.reset_password(first, "newpass123")
    service.reset_password(second, "newpass123")


# -----------------------------------------------------------------------------
# Reset Password
# -----------------------------------------------------------------------------

def test_reset_password_sets_new_password_and_clears_token(service, users):
    service.register("a@example.com", "password123")
    secret = service.forgot_password("a@example.com")

    service.reset_password(secret, "newpass123")

    stored = users.find_by_email("a@example.com")
    assert stored.reset_token_hash is None
    assert stored.reset_token_expiry is None
    service.login("a@example.com", "newpass123")
    with pytest.raises(InvalidCredentialsError):
        service.login("a@example.com", "password123")


def test_reset_secret_is_single_use(service):
    service.register("a@example.com", "password123")
    secret = service.forgot_password("a@example.com")
    service.reset_password(secret, "newpass123")

    with pytest.raises(InvalidOrExpiredResetTokenError):
        service.reset_password(secret, "another123")


def test_reset_without_any_active_token(service):
    service.register("a@example.com", "password123")

    with pytest.raises(InvalidOrExpiredResetTokenError):
        service.reset_password("0" * 64, "newpass123")


def test_reset_with_wrong_secret(service):
    service.register("a@example.com", "password123")
    service.forgot_password("a@example.com")

    with pytest.raises(InvalidOrExpiredResetTokenError):
        service.reset_password("0" * 64, "newpass123")

    # Password unchanged
    service.login("a@example.com", "password123")


def test_reset_just_before_expiry(service, clock):
    service.register("a@example.com", "password123")
    secret = service.forgot_password("a@example.com")

    clock.advance(minutes=59)
    service.reset_password(secret, "newpass123")


def test_reset_after_expiry(service, clock):
    service.register("a@example.com", "password123")
    secret = service.forgot_password("a@example.com")

    clock.advance(minutes=61)

    with pytest.raises(InvalidOrExpiredResetTokenError):
        service.reset_password(secret, "newpass123")
    service.login("a@example.com", "password123")


def test_reset_fails_when_token_consumed_concurrently(service, users, monkeypatch):
    service.register("a@example.com", "password123")
    secret = service.forgot_password("a@example.com")

    monkeypatch.setattr(users, "consume_reset_token", lambda **kwargs: False)

    with pytest.raises(InvalidOrExpiredResetTokenError):
        service.reset_password(secret, "newpass123")


def test_consume_reset_token_only_matches_expected_hash(service, users):
    registered = service.register("a@example.com", "password123")
    service.forgot_password("a@example.com")

    assert users.consume_reset_token(
        user_id=registered.user.id, expected_hash="stale", password_hash="x"
    ) is False

    current = users.find_by_email("a@example.com").reset_token_hash
    assert users.consume_reset_token(
        user_id=registered.user.id, expected_hash=current, password_hash="x"
    ) is True


def test_reset_with_several_outstanding_tokens(service, clock):
    service.register("a@example.com", "password123")
    service.register("b@example.com", "password123")
    secret_a = service.forgot_password("a@example.com")
    clock.advance(minutes=1)
    secret_b = service.forgot_password("b@example.com")

    # The older secret is found even though b's expires later
    service.reset_password(secret_a, "newpass-a")
    service.reset_password(secret_b, "newpass-b")

    service.login("a@example.com", "newpass-a")
    service.login("b@example.com", "newpass-b")


def test_reset_only_changes_the_matching_user(service, clock):
    service.register("a@example.com", "password123")
    service.register("b@example.com", "password123")
    secret_a = service.forgot_password("a@example.com")
    clock.advance(minutes=1)
    service.forgot_password("b@example.com")

    service.reset_password(secret_a, "newpass123")

    service.login("b@example.com", "password123")
    with pytest.raises(InvalidCredentialsError):
        service.login("a@example.com", "password123")


def test_user_model_defaults(users):
    user = users.create("a@example.com", "hash")

    assert isinstance(user, User)
    assert len(user.id) == 36
    assert user.created_at is not None
    assert user.updated_at is not None
