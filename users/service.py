"""
users/service.py -- Registration and self-service profile management.

Authorization model: a caller may only update or delete their own record.
The caller id comes from the verified access token (auth/dependencies.py);
there is no admin override.

Partial updates: a UserPatch field overwrites the stored value only when it
is not None and, for strings, not empty. age=0 in a patch therefore does set
the age to 0, while an omitted age leaves it alone.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace

from auth.models import DEFAULT_ROLE, Registered, Registration, User, UserPatch, UserView
from auth.service import AuthService, Clock, sanitize, utcnow
from auth.store import CredentialStore, DuplicateEmail, StoreError
from auth.tokens import hash_password
from auth.validation import is_valid_email, validate_patch, validate_registration
from core.errors import BadRequest, Forbidden, InternalError, NotFound, ValidationError

logger = logging.getLogger("accounts.users")

_EMAIL_TAKEN = "Email already exists"


class UserService:
    def __init__(self, store: CredentialStore, auth: AuthService, *, clock: Clock = utcnow) -> None:
        self.store = store
        self.auth = auth
        self.clock = clock

    def register(self, payload: Registration) -> Registered:
        """Create an account and open its first session.

        Validation runs first and reports the first failing rule. The email
        pre-check gives a friendly error; the store re-checks inside its
        insert transaction in case a concurrent registration won the race.
        """
        validate_registration(payload)
        try:
            taken = self.store.get_by_email(payload.email) is not None
        except StoreError as exc:
            logger.exception("Email lookup failed during registration")
            raise InternalError("Could not check email") from exc
        if taken:
            raise ValidationError(_EMAIL_TAKEN)

        try:
            hashed = hash_password(payload.password)
        except ValueError as exc:
            logger.exception("Password hashing failed during registration")
            raise InternalError("Failed to hash password") from exc

        user = User(
            id=str(uuid.uuid4()),
            username=payload.username,
            email=payload.email,
            hashed_password=hashed,
            name=payload.name,
            lastname=payload.lastname,
            age=payload.age,
            role=DEFAULT_ROLE,
            created_at=self.clock().isoformat(),
        )
        try:
            self.store.create_user(user)
        except DuplicateEmail as exc:
            raise ValidationError(_EMAIL_TAKEN) from exc
        except StoreError as exc:
            logger.exception("Failed to persist new user")
            raise InternalError("Could not create user") from exc

        tokens = self.auth.start_session(user)
        logger.info("User %s created", user.id)
        return Registered(user=sanitize(user), tokens=tokens)

    def get(self, user_id: str) -> UserView:
        user = self._load(user_id)
        if user is None:
            raise NotFound("User not found")
        if not user.name or not user.email:
            logger.error("User %s found but required fields are empty", user_id)
            raise InternalError("User data is incomplete")
        return sanitize(user)

    def list(self) -> list[UserView]:
        try:
            users = self.store.list_users()
        except StoreError as exc:
            logger.exception("Failed to list users")
            raise InternalError("Could not fetch users") from exc
        return [sanitize(u) for u in users]

    def update(self, user_id: str, caller_id: str, patch: UserPatch) -> None:
        if caller_id != user_id:
            raise Forbidden("You are not authorized to update this user")
        validate_patch(patch)

        user = self._load(user_id)
        if user is None:
            raise NotFound("User not found")

        changes: dict = {}
        for field_name in ("username", "email", "name", "lastname"):
            value = getattr(patch, field_name)
            if value:
                changes[field_name] = value
        if patch.age is not None:
            changes["age"] = patch.age
        if patch.password:
            try:
                changes["hashed_password"] = hash_password(patch.password)
            except ValueError as exc:
                logger.exception("Password hashing failed during update of user %s", user_id)
                raise InternalError("Failed to hash password") from exc

        try:
            updated = self.store.update_user(replace(user, **changes))
        except DuplicateEmail as exc:
            raise ValidationError(_EMAIL_TAKEN) from exc
        except StoreError as exc:
            logger.exception("Failed to update user %s", user_id)
            raise InternalError("Could not update user") from exc
        if not updated:
            raise NotFound("User not found")
        logger.info("User %s updated (%s)", user_id, ", ".join(sorted(changes)) or "no changes")

    def delete(self, user_id: str, caller_id: str) -> None:
        if caller_id != user_id:
            raise Forbidden("You are not authorized to delete this user")
        if self._load(user_id) is None:
            raise NotFound("User not found")

        try:
            deleted = self.store.delete_user(user_id)
        except StoreError as exc:
            logger.exception("Failed to delete user %s", user_id)
            raise InternalError("Error deleting user") from exc
        if not deleted:
            raise NotFound("User not found")

        try:
            self.store.delete_refresh_token(user_id)
        except StoreError:
            logger.warning("Failed to delete refresh token of deleted user %s", user_id, exc_info=True)
        logger.info("User %s deleted", user_id)

    def find_by_email(self, email: str) -> UserView:
        if not email:
            raise BadRequest("Email query parameter is required")
        if not is_valid_email(email):
            raise BadRequest("Invalid email format")
        try:
            user = self.store.get_by_email(email)
        except StoreError as exc:
            logger.exception("Email lookup failed")
            raise InternalError() from exc
        if user is None:
            raise NotFound("User not found")
        return sanitize(user)

    def _load(self, user_id: str) -> User | None:
        try:
            return self.store.get_by_id(user_id)
        except StoreError as exc:
            logger.exception("Failed to load user %s", user_id)
            raise InternalError() from exc
