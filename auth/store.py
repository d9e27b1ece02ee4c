"""
auth/store.py -- Credential Store: persistence for users and refresh tokens.

Pattern: Repository + Data Mapper. CredentialStore is the repository contract;
_user_to_json / _json_to_user are the mappers. Services never touch keys or
JSON directly.

Two implementers:
  KVCredentialStore      -- production, on top of kv.store.KVStore.
  InMemoryCredentialStore -- dict-backed, for unit tests and scripts.

Key layout in the KV engine:
  user:<user_id>           -> JSON of the User dataclass
  refresh_token:<user_id>  -> current refresh token string

Refresh tokens are keyed by user, so saving a new one overwrites the old one
and a user never has more than one live refresh token. Resolving a token back
to its owner is a prefix scan over refresh_token:*.

Email uniqueness is re-checked inside the same update transaction that writes
the user record (DuplicateEmail), which closes the gap between the service's
pre-check and the insert.

Missing records are reported as None / False, never as exceptions. Engine
failures propagate as kv.store.StoreError.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import json
from dataclasses import asdict, replace
from typing import Protocol

from auth.models import DEFAULT_ROLE, User
from kv.store import KVStore, KVTransaction, StoreError

_USER_PREFIX = "user:"
_REFRESH_PREFIX = "refresh_token:"

__all__ = [
    "CredentialStore",
    "DuplicateEmail",
    "InMemoryCredentialStore",
    "KVCredentialStore",
    "StoreError",
]


class DuplicateEmail(StoreError):
    """Another user already owns this email address."""


class CredentialStore(Protocol):
    """Capability set the services depend on. Swap engines by implementing this."""

    def create_user(self, user: User) -> None: ...

    def get_by_id(self, user_id: str) -> User | None: ...

    def get_by_email(self, email: str) -> User | None: ...

    def list_users(self) -> list[User]: ...

    def update_user(self, user: User) -> bool: ...

    def delete_user(self, user_id: str) -> bool: ...

    def save_refresh_token(self, user_id: str, token: str) -> None: ...

    def find_refresh_token(self, token: str) -> str | None: ...

    def delete_refresh_token(self, user_id: str) -> bool: ...


# ---------------------------------------------------------------------------
# KV-backed implementation
# ---------------------------------------------------------------------------


class KVCredentialStore:
    """CredentialStore over the embedded key-value engine.

    Usage:
        store = KVCredentialStore(KVStore("sqlite:///accounts.db"))
        store.create_user(user)
        store.save_refresh_token(user.id, token)
        store.find_refresh_token(token)   # -> user.id
    """

    def __init__(self, kv: KVStore) -> None:
        self.kv = kv

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> None:
        """Insert a new user. Raises DuplicateEmail if the email is taken."""
        with self.kv.update() as tx:
            if _find_by_email(tx, user.email) is not None:
                raise DuplicateEmail(user.email)
            tx.set(_user_key(user.id), _user_to_json(user))

    def get_by_id(self, user_id: str) -> User | None:
        raw = self.kv.get(_user_key(user_id))
        return _json_to_user(raw) if raw is not None else None

    def get_by_email(self, email: str) -> User | None:
        with self.kv.view() as tx:
            return _find_by_email(tx, email)

    def list_users(self) -> list[User]:
        """Return every user in key order."""
        return [_json_to_user(raw) for _, raw in self.kv.scan(_USER_PREFIX)]

    def update_user(self, user: User) -> bool:
        """Overwrite an existing user record.

        Returns False if no record exists for user.id. Raises DuplicateEmail
        if the (possibly changed) email belongs to a different user.
        """
        with self.kv.update() as tx:
            if tx.get(_user_key(user.id)) is None:
                return False
            owner = _find_by_email(tx, user.email)
            if owner is not None and owner.id != user.id:
                raise DuplicateEmail(user.email)
            tx.set(_user_key(user.id), _user_to_json(user))
        return True

    def delete_user(self, user_id: str) -> bool:
        return self.kv.delete(_user_key(user_id))

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    def save_refresh_token(self, user_id: str, token: str) -> None:
        self.kv.set(_refresh_key(user_id), token)

    def find_refresh_token(self, token: str) -> str | None:
        """Return the id of the user whose current refresh token is token."""
        with self.kv.view() as tx:
            for key, value in tx.scan(_REFRESH_PREFIX):
                if value == token:
                    return key[len(_REFRESH_PREFIX) :]
        return None

    def delete_refresh_token(self, user_id: str) -> bool:
        return self.kv.delete(_refresh_key(user_id))


def _user_key(user_id: str) -> str:
    return f"{_USER_PREFIX}{user_id}"


def _refresh_key(user_id: str) -> str:
    return f"{_REFRESH_PREFIX}{user_id}"


def _find_by_email(tx: KVTransaction, email: str) -> User | None:
    for _, raw in tx.scan(_USER_PREFIX):
        user = _json_to_user(raw)
        if user.email == email:
            return user
    return None


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class InMemoryCredentialStore:
    """Dict-backed CredentialStore. Not thread-safe; meant for tests."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._refresh_tokens: dict[str, str] = {}

    def create_user(self, user: User) -> None:
        if self.get_by_email(user.email) is not None:
            raise DuplicateEmail(user.email)
        self._users[user.id] = replace(user)

    def get_by_id(self, user_id: str) -> User | None:
        user = self._users.get(user_id)
        return replace(user) if user is not None else None

    def get_by_email(self, email: str) -> User | None:
        for user in self._users.values():
            if user.email == email:
                return replace(user)
        return None

    def list_users(self) -> list[User]:
        return [replace(self._users[k]) for k in sorted(self._users)]

    def update_user(self, user: User) -> bool:
        if user.id not in self._users:
            return False
        owner = self.get_by_email(user.email)
        if owner is not None and owner.id != user.id:
            raise DuplicateEmail(user.email)
        self._users[user.id] = replace(user)
        return True

    def delete_user(self, user_id: str) -> bool:
        return self._users.pop(user_id, None) is not None

    def save_refresh_token(self, user_id: str, token: str) -> None:
        self._refresh_tokens[user_id] = token

    def find_refresh_token(self, token: str) -> str | None:
        for user_id, current in self._refresh_tokens.items():
            if current == token:
                return user_id
        return None

    def delete_refresh_token(self, user_id: str) -> bool:
        return self._refresh_tokens.pop(user_id, None) is not None


# ---------------------------------------------------------------------------
# Mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _user_to_json(user: User) -> str:
    return json.dumps(asdict(user), separators=(",", ":"))


def _json_to_user(raw: str) -> User:
    try:
        data = json.loads(raw)
        return User(
            id=data["id"],
            username=data.get("username", ""),
            email=data.get("email", ""),
            hashed_password=data.get("hashed_password", ""),
            name=data.get("name", ""),
            lastname=data.get("lastname", ""),
            age=int(data.get("age") or 0),
            role=data.get("role") or DEFAULT_ROLE,
            created_at=data.get("created_at", ""),
        )
    except (ValueError, KeyError, TypeError) as exc:
        raise StoreError("Corrupt user record") from exc
