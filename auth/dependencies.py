"""
auth/dependencies.py -- FastAPI Depends() helpers for bearer authentication.

Protected routes read `Authorization: Bearer <access_token>`. The token is
verified (signature, expiry, typ="access") by AuthService.identify(); the
resulting Identity is returned to the route and also stored on
request.state (user_id, role) for middleware and logging.

try_get_identity() is the soft variant (returns None on failure).
get_current_identity() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from api/, kv/, or users/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Identity
from auth.service import AuthService

_BEARER = "Bearer "


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER):
        return None
    return header[len(_BEARER) :].strip() or None


def try_get_identity(request: Request) -> Identity | None:
    """Authenticate the request from its bearer token. Never raises."""
    token = _bearer_token(request)
    if token is None:
        return None
    auth: AuthService = request.app.state.auth_service
    identity = auth.identify(token)
    if identity is not None:
        request.state.user_id = identity.user_id
        request.state.role = identity.role
    return identity


def get_current_identity(request: Request) -> Identity:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.delete("/user/{user_id}")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    identity = try_get_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Unauthorized, missing or invalid token."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
