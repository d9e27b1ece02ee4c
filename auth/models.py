"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these only own the domain shape.

Layer rule: no imports from api/, kv/, or users/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_ROLE = "user"


@dataclass
class User:
    """A registered account as persisted in the credential store.

    hashed_password is a bcrypt hash. It never holds plaintext once the record
    has been written -- registration and update hash before persisting.

    id is assigned by UserService.register (uuid4 string); created_at is an
    ISO 8601 timestamp stamped at the same time.
    """

    id: str
    username: str
    email: str
    hashed_password: str
    name: str = ""
    lastname: str = ""
    age: int = 0
    role: str = DEFAULT_ROLE
    created_at: str = ""


@dataclass(frozen=True)
class UserView:
    """Sanitized user: everything a client may see. No hash, no role."""

    id: str
    username: str
    email: str
    name: str
    lastname: str
    age: int


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful login or refresh."""

    tokens: TokenPair
    user: UserView


@dataclass(frozen=True)
class Identity:
    """Claims of a verified access token, scoped to one request."""

    user_id: str
    username: str
    role: str


@dataclass
class Registration:
    """Self-service sign-up payload. Password is plaintext until hashed."""

    username: str
    email: str
    password: str
    name: str
    lastname: str
    age: int = 0


@dataclass
class UserPatch:
    """Partial profile update.

    None means "leave unchanged". Empty strings are treated the same way, so
    a patch can never blank out a required field.
    """

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    lastname: Optional[str] = None
    age: Optional[int] = None


@dataclass(frozen=True)
class Registered:
    """Result of a successful registration."""

    user: UserView
    tokens: TokenPair
