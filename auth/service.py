"""
auth/service.py -- Session lifecycle: login, logout, refresh.

Per user the session moves Anonymous -> Authenticated -> Anonymous (access
token expiry or logout). Refreshing is a transient step inside Authenticated:
the presented refresh token is retired and a new pair takes its place.

Failure policy:
  - Removing the previous refresh token before issuing a new one is
    best-effort. "Nothing to remove" and store errors are logged, never fatal;
    the save that follows overwrites the record anyway.
  - Any failure while signing or saving the new pair is fatal and surfaces as
    InternalError (500). Details go to the log, not to the client.
  - Store read failures surface as InternalError as well.

The signing secret and the clock are constructor arguments. Nothing here
reads configuration or global state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.models import AuthResult, Identity, TokenPair, User, UserView
from auth.store import CredentialStore, StoreError
from auth.tokens import (
    ACCESS_TOKEN_TTL,
    REFRESH_TOKEN_TTL,
    burn_password_check,
    decode_access_token,
    is_expired,
    issue_tokens,
    verify_password,
)
from auth.validation import validate_login
from core.errors import BadRequest, InternalError, InvalidCredentials, SigningError, Unauthorized

logger = logging.getLogger("accounts.auth")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sanitize(user: User) -> UserView:
    """Strip the password hash (and role) from a stored user."""
    return UserView(
        id=user.id,
        username=user.username,
        email=user.email,
        name=user.name,
        lastname=user.lastname,
        age=user.age,
    )


class AuthService:
    """Orchestrates credential checks, token issuance and refresh-token storage.

    Usage:
        auth = AuthService(store, secret=settings.jwt_secret)
        result = auth.login("a@x.com", "longenough1")
        auth.refresh("a@x.com", result.tokens.refresh_token)
        auth.logout(result.tokens.refresh_token)
    """

    def __init__(
        self,
        store: CredentialStore,
        secret: str,
        *,
        access_ttl: timedelta = ACCESS_TOKEN_TTL,
        refresh_ttl: timedelta = REFRESH_TOKEN_TTL,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self._secret = secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.clock = clock

    # ------------------------------------------------------------------
    # Login / logout / refresh
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> AuthResult:
        """Authenticate by email and password and open a new session.

        Unknown email and wrong password raise the same InvalidCredentials.
        For an unknown email bcrypt still runs against a dummy hash so the
        response time does not reveal whether the account exists.
        """
        validate_login(email, password)
        try:
            user = self.store.get_by_email(email)
        except StoreError as exc:
            logger.exception("Credential lookup failed during login")
            raise InternalError() from exc

        if user is None:
            burn_password_check(password)
            logger.info("Login rejected: unknown email")
            raise InvalidCredentials()
        if not verify_password(password, user.hashed_password):
            logger.info("Login rejected: wrong password for user %s", user.id)
            raise InvalidCredentials()

        tokens = self.start_session(user)
        logger.info("User %s logged in", user.id)
        return AuthResult(tokens=tokens, user=sanitize(user))

    def logout(self, token: str) -> None:
        """Revoke the refresh token. The owner has to log in again afterwards."""
        if not token:
            raise BadRequest("Token is required")
        try:
            user_id = self.store.find_refresh_token(token)
        except StoreError as exc:
            logger.exception("Refresh token lookup failed during logout")
            raise InternalError() from exc
        if user_id is None:
            raise Unauthorized("You are not logged in")

        try:
            removed = self.store.delete_refresh_token(user_id)
        except StoreError as exc:
            logger.exception("Failed to delete refresh token for user %s", user_id)
            raise InternalError("Could not log out") from exc
        if not removed:
            # A concurrent logout or refresh got there first.
            raise Unauthorized("You are not logged in")
        logger.info("User %s logged out", user_id)

    def refresh(self, identifier: str, refresh_token: str) -> AuthResult:
        """Exchange a live refresh token for a new pair.

        identifier must be the owner's email or username. Presenting someone
        else's token with your own identifier is rejected.
        """
        if not identifier or not refresh_token:
            raise BadRequest("Identifier and refresh token are required")
        if is_expired(refresh_token, self._secret, now=self.clock()):
            raise Unauthorized("Token has expired")

        try:
            user_id = self.store.find_refresh_token(refresh_token)
            user = self.store.get_by_id(user_id) if user_id is not None else None
        except StoreError as exc:
            logger.exception("Store lookup failed during refresh")
            raise InternalError() from exc
        if user_id is None:
            raise Unauthorized("Invalid refresh token")
        if user is None or identifier not in (user.email, user.username):
            logger.warning("Refresh rejected: identifier does not match token owner %s", user_id)
            raise Unauthorized("There is no matching user")

        tokens = self.start_session(user)
        logger.info("Issued new token pair for user %s", user.id)
        return AuthResult(tokens=tokens, user=sanitize(user))

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def start_session(self, user: User) -> TokenPair:
        """Retire any previous refresh token, then issue and persist a new pair."""
        try:
            if not self.store.delete_refresh_token(user.id):
                logger.debug("No previous refresh token for user %s", user.id)
        except StoreError:
            logger.warning("Failed to delete previous refresh token for user %s", user.id, exc_info=True)

        try:
            tokens = issue_tokens(
                user.id,
                user.username,
                user.role,
                self._secret,
                now=self.clock(),
                access_ttl=self.access_ttl,
                refresh_ttl=self.refresh_ttl,
            )
        except SigningError:
            logger.exception("Failed to sign tokens for user %s", user.id)
            raise

        try:
            self.store.save_refresh_token(user.id, tokens.refresh_token)
        except StoreError as exc:
            logger.exception("Failed to save refresh token for user %s", user.id)
            raise InternalError("Failed to save refresh token") from exc
        return tokens

    def identify(self, access_token: str) -> Identity | None:
        """Resolve a bearer access token to its claims, or None if invalid."""
        payload = decode_access_token(access_token, self._secret, now=self.clock())
        if payload is None:
            return None
        return Identity(
            user_id=str(payload["user_id"]),
            username=str(payload.get("username", "")),
            role=str(payload["role"]),
        )
