"""Unit tests for auth/service.py -- login, logout, refresh and identify.

Runs against both credential store implementations (see conftest.py). Time is
driven by FakeClock so expiry is tested without sleeping.

Covers:
- login: success, unknown email vs wrong password indistinguishable, validation
- logout: revokes the token once; second logout is Unauthorized
- refresh: rotation, identifier matching (email or username), expiry after 7 days
- start_session: replaces the previous refresh token
- identify: access tokens only
- store failures surface as InternalError
"""

import pytest

from auth.service import AuthService
from auth.store import StoreError
from core.errors import BadRequest, InternalError, InvalidCredentials, SigningError, Unauthorized, ValidationError

PASSWORD = "longenough1"


@pytest.fixture
def alice(user_service, make_registration):
    """A registered user. Returns the Registered result."""
    return user_service.register(make_registration())


class TestLogin:
    def test_success_returns_tokens_and_sanitized_user(self, auth_service, alice) -> None:
        result = auth_service.login("alice@example.com", PASSWORD)
        assert result.user.id == alice.user.id
        assert result.user.email == "alice@example.com"
        assert not hasattr(result.user, "hashed_password")
        assert result.tokens.access_token
        assert result.tokens.refresh_token

    def test_unknown_email_and_wrong_password_look_the_same(self, auth_service, alice) -> None:
        with pytest.raises(InvalidCredentials) as unknown:
            auth_service.login("nobody@example.com", PASSWORD)
        with pytest.raises(InvalidCredentials) as wrong:
            auth_service.login("alice@example.com", "wrong-password")
        assert unknown.value.message == wrong.value.message
        assert unknown.value.status_code == 401

    def test_invalid_input(self, auth_service) -> None:
        with pytest.raises(ValidationError):
            auth_service.login("", "")
        with pytest.raises(ValidationError, match="Invalid email format"):
            auth_service.login("not-an-email", PASSWORD)

    def test_login_replaces_registration_refresh_token(self, auth_service, credential_store, alice) -> None:
        result = auth_service.login("alice@example.com", PASSWORD)
        assert credential_store.find_refresh_token(alice.tokens.refresh_token) is None
        assert credential_store.find_refresh_token(result.tokens.refresh_token) == alice.user.id


class TestLogout:
    def test_logout_then_second_logout_unauthorized(self, auth_service, alice) -> None:
        token = auth_service.login("alice@example.com", PASSWORD).tokens.refresh_token
        auth_service.logout(token)
        with pytest.raises(Unauthorized, match="You are not logged in"):
            auth_service.logout(token)

    def test_empty_token(self, auth_service) -> None:
        with pytest.raises(BadRequest, match="Token is required"):
            auth_service.logout("")

    def test_unknown_token(self, auth_service) -> None:
        with pytest.raises(Unauthorized):
            auth_service.logout("never-issued")


class TestRefresh:
    def test_refresh_rotates_token(self, auth_service, alice) -> None:
        first = auth_service.refresh("alice@example.com", alice.tokens.refresh_token)
        second = auth_service.refresh("alice@example.com", first.tokens.refresh_token)
        assert second.user.id == alice.user.id
        with pytest.raises(Unauthorized, match="Invalid refresh token"):
            auth_service.refresh("alice@example.com", first.tokens.refresh_token)

    def test_refresh_by_username(self, auth_service, alice) -> None:
        result = auth_service.refresh("alice", alice.tokens.refresh_token)
        assert result.user.username == "alice"

    def test_identifier_must_match_token_owner(self, auth_service, user_service, make_registration, alice) -> None:
        user_service.register(make_registration(username="bob", email="bob@example.com"))
        with pytest.raises(Unauthorized, match="There is no matching user"):
            auth_service.refresh("bob@example.com", alice.tokens.refresh_token)

    def test_missing_input(self, auth_service) -> None:
        with pytest.raises(BadRequest):
            auth_service.refresh("", "token")
        with pytest.raises(BadRequest):
            auth_service.refresh("alice@example.com", "")

    def test_expired_after_seven_days(self, auth_service, clock, alice) -> None:
        clock.advance(days=7, seconds=1)
        with pytest.raises(Unauthorized, match="Token has expired"):
            auth_service.refresh("alice@example.com", alice.tokens.refresh_token)

    def test_still_valid_just_before_expiry(self, auth_service, clock, alice) -> None:
        clock.advance(days=6, hours=23)
        assert auth_service.refresh("alice@example.com", alice.tokens.refresh_token).user.id == alice.user.id

    def test_token_of_deleted_user(self, auth_service, credential_store, alice) -> None:
        # The token record survives but the user is gone.
        credential_store.delete_user(alice.user.id)
        with pytest.raises(Unauthorized, match="There is no matching user"):
            auth_service.refresh("alice@example.com", alice.tokens.refresh_token)


class TestIdentify:
    def test_access_token_identifies_user(self, auth_service, alice) -> None:
        identity = auth_service.identify(alice.tokens.access_token)
        assert identity is not None
        assert identity.user_id == alice.user.id
        assert identity.username == "alice"
        assert identity.role == "user"

    def test_refresh_token_is_not_an_access_token(self, auth_service, alice) -> None:
        assert auth_service.identify(alice.tokens.refresh_token) is None

    def test_access_token_expires(self, auth_service, clock, alice) -> None:
        clock.advance(minutes=11)
        assert auth_service.identify(alice.tokens.access_token) is None

    def test_garbage(self, auth_service) -> None:
        assert auth_service.identify("garbage") is None


class _BrokenStore:
    """CredentialStore whose every call fails like a dead database."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise StoreError("database is down")

        return fail


class TestStoreFailures:
    def test_login_lookup_failure_is_internal(self, clock) -> None:
        service = AuthService(_BrokenStore(), "s" * 32, clock=clock)
        with pytest.raises(InternalError):
            service.login("alice@example.com", PASSWORD)

    def test_logout_lookup_failure_is_internal(self, clock) -> None:
        service = AuthService(_BrokenStore(), "s" * 32, clock=clock)
        with pytest.raises(InternalError):
            service.logout("some-token")

    def test_empty_secret_cannot_sign(self, credential_store, clock, user_service, make_registration) -> None:
        registered = user_service.register(make_registration())
        unsigned = AuthService(credential_store, "", clock=clock)
        user = credential_store.get_by_id(registered.user.id)
        with pytest.raises(SigningError):
            unsigned.start_session(user)
