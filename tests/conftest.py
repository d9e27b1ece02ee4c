"""
tests/conftest.py -- Shared test fixtures for the account service.

This module provides:
  - FakeClock: a settable clock for token-expiry tests
  - kv / credential_store: fresh stores per test (credential_store runs every
    test against both the KV-backed and the in-memory implementation)
  - auth_service / user_service: services wired to those stores
  - make_registration: factory for a valid Registration with overrides
  - api_client: TestClient over the real app with an isolated store

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Environment must be set before any api/ or core/ import: api.main reads
get_settings() at import time and Settings refuses to start without a
signing secret.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: set before importing the app.
os.environ["JWT_SECRET"] = "test-secret-key-that-is-at-least-32-chars-long"
os.environ["ALLOWED_HOSTS"] = '["testserver", "localhost"]'
os.environ["LOGIN_RATE_LIMIT"] = "50/minute"
os.environ["LOCAL_DB_PATH"] = ":memory:"

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, build_services
from auth.models import Registration
from auth.service import AuthService
from auth.store import InMemoryCredentialStore, KVCredentialStore
from kv.store import KVStore
from users.service import UserService

SECRET = os.environ["JWT_SECRET"]
PASSWORD = "longenough1"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _registration(**overrides) -> Registration:
    fields = {
        "username": "alice",
        "email": "alice@example.com",
        "password": PASSWORD,
        "name": "Alice",
        "lastname": "Liddell",
        "age": 30,
    }
    fields.update(overrides)
    return Registration(**fields)


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def kv() -> Generator[KVStore, None, None]:
    store = KVStore("sqlite://")
    yield store
    store.close()


@pytest.fixture(params=["kv", "memory"])
def credential_store(request, kv):
    """Each test using this fixture runs once per CredentialStore implementation."""
    if request.param == "kv":
        return KVCredentialStore(kv)
    return InMemoryCredentialStore()


@pytest.fixture
def make_registration():
    """Factory for a Registration that passes validation, with fields overridden."""
    return _registration


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auth_service(credential_store, clock) -> AuthService:
    return AuthService(credential_store, SECRET, clock=clock)


@pytest.fixture
def user_service(credential_store, auth_service, clock) -> UserService:
    return UserService(credential_store, auth_service, clock=clock)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(kv: KVStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the real service graph over the given test store so routes never
    touch the database named by LOCAL_DB_PATH.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        build_services(app, kv)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient backed by an isolated shared-memory store.

    One store per test module; tests inside a module use distinct emails so
    they do not collide.
    """
    db_url = f"sqlite:///file:test_accounts_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    kv = KVStore(db_url)
    app.router.lifespan_context = _patch_lifespan(kv)
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    kv.close()


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Cheap bcrypt cost factor for unit tests. Hashes stay valid bcrypt."""
    monkeypatch.setattr("auth.tokens.BCRYPT_ROUNDS", 4)
