"""
auth/tokens.py -- JWT issuance/verification and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Every function takes the signing secret as an
       argument -- there is no module-level key. AuthService receives the
       secret from core.config.Settings and passes it down.

       Access tokens live 10 minutes and carry user_id, username and role.
       Refresh tokens live 7 days and carry no role. Both carry a typ claim
       ("access" / "refresh") so one cannot be used in place of the other,
       and a random jti so two tokens issued in the same second differ.

       Verification is fail-closed: a bad signature, a parse failure or a
       missing exp all count as "expired". Callers cannot tell them apart.

  Passwords: bcrypt directly (no passlib wrapper). Input is truncated to
       bcrypt's 72-byte limit before hashing; the validator caps passwords at
       128 characters. _DUMMY_HASH lets AuthService run a full bcrypt check
       for unknown emails so response time does not reveal account existence.

Layer rule: no imports from api/, kv/, or users/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import jwt
from jose.exceptions import JOSEError

from auth.models import TokenPair
from core.errors import SigningError

logger = logging.getLogger("accounts.auth")

_ALGORITHM = "HS256"

ACCESS_TOKEN_TTL = timedelta(minutes=10)
REFRESH_TOKEN_TTL = timedelta(days=7)

ACCESS = "access"
REFRESH = "refresh"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

BCRYPT_ROUNDS = 12
_BCRYPT_MAX_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ValueError if bcrypt rejects the input; UserService turns that
    into an InternalError.
    """
    pw_bytes = plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash. Never raises."""
    pw_bytes = plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Computed once at import so the first login is not measurably slower.
_DUMMY_HASH: str = hash_password("accounts_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run a bcrypt comparison whose result is discarded (timing equalization)."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _encode(claims: dict, secret: str) -> str:
    if not secret:
        raise SigningError("Signing secret is not configured.")
    try:
        return jwt.encode(claims, secret, algorithm=_ALGORITHM)
    except (JOSEError, TypeError, ValueError) as exc:
        raise SigningError() from exc


def issue_tokens(
    user_id: str,
    username: str,
    role: str,
    secret: str,
    *,
    now: datetime | None = None,
    access_ttl: timedelta = ACCESS_TOKEN_TTL,
    refresh_ttl: timedelta = REFRESH_TOKEN_TTL,
) -> TokenPair:
    """Sign a fresh access/refresh pair for one user.

    Args:
        user_id:     Stable user identifier (also the JWT subject).
        username:    Display identity, carried in both tokens.
        role:        Authorization role, carried in the access token only.
        secret:      HS256 key. Empty -> SigningError.
        now:         Issue time; defaults to the wall clock.
        access_ttl:  Access token lifetime (default 10 minutes).
        refresh_ttl: Refresh token lifetime (default 7 days).
    """
    issued = now or _utcnow()
    iat = int(issued.timestamp())
    access_claims = {
        "sub": user_id,
        "user_id": user_id,
        "username": username,
        "role": role,
        "typ": ACCESS,
        "iat": iat,
        "exp": int((issued + access_ttl).timestamp()),
        "jti": uuid.uuid4().hex,
    }
    refresh_claims = {
        "sub": user_id,
        "user_id": user_id,
        "username": username,
        "typ": REFRESH,
        "iat": iat,
        "exp": int((issued + refresh_ttl).timestamp()),
        "jti": uuid.uuid4().hex,
    }
    return TokenPair(
        access_token=_encode(access_claims, secret),
        refresh_token=_encode(refresh_claims, secret),
    )


def _verified_claims(token: str, secret: str, now: datetime | None) -> dict | None:
    """Signature-checked, unexpired claims, or None on any failure."""
    if not token or not secret:
        return None
    try:
        # exp is checked below against the injectable clock, not jose's.
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM], options={"verify_exp": False})
    except (JOSEError, ValueError, TypeError):
        return None
    exp = payload.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        return None
    current = int((now or _utcnow()).timestamp())
    if current > exp:
        return None
    return payload


def is_expired(token: str, secret: str, *, now: datetime | None = None) -> bool:
    """Return True unless token has a valid signature and an exp in the future."""
    return _verified_claims(token, secret, now) is None


def decode_access_token(token: str, secret: str, *, now: datetime | None = None) -> dict | None:
    """Decode and verify an access token. Returns the payload dict or None.

    Refresh tokens are rejected here even though their signature is valid --
    only typ="access" tokens authorize protected routes.
    """
    payload = _verified_claims(token, secret, now)
    if payload is None or payload.get("typ") != ACCESS:
        return None
    if "user_id" not in payload or "role" not in payload:
        return None
    return payload
