"""
tests/conftest.py -- Shared test fixtures for mintgate.

This module provides:
  - record_store: in-memory RecordStore seeded with two valid users
  - authenticator: Authenticator built from record_store with TEST_SECRET_KEY
  - api_client: TestClient whose lifespan wires a seeded store + Authenticator

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

DEBUG and BCRYPT_ROUNDS must be set before any core/auth import so
get_settings() auto-generates a SECRET_KEY and test hashes stay cheap.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any core/auth import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.authenticator import Authenticator
from auth.store import RecordStore
from auth.tokens import hash_password

TEST_SECRET_KEY = "test-signing-key-0123456789abcdef0123456789"
TEST_ROUNDS = 4

# username -> (password, role)
USERS = {
    "alice": ("wonderland", "admin"),
    "carol": ("looking-glass", "viewer"),
}


def seed(store: RecordStore, users: dict[str, tuple[str, str]] = USERS) -> None:
    """Enroll every (username, password, role) into store with cheap bcrypt hashes."""
    for username, (password, role) in users.items():
        store.add_record(username, hash_password(password, rounds=TEST_ROUNDS), role)


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def signing_key() -> str:
    """The HMAC key every test Authenticator is built with."""
    return TEST_SECRET_KEY


@pytest.fixture
def users() -> dict[str, tuple[str, str]]:
    """The seeded credentials: username -> (password, role)."""
    return dict(USERS)


@pytest.fixture
def record_store() -> Generator[RecordStore, None, None]:
    """Fresh in-memory RecordStore seeded with USERS."""
    store = RecordStore("sqlite:///:memory:")
    store.create_schema()
    seed(store)
    yield store
    store.close()


@pytest.fixture
def authenticator(record_store: RecordStore) -> Authenticator:
    """Authenticator over the seeded record_store."""
    return Authenticator.from_store(record_store, TEST_SECRET_KEY, TEST_ROUNDS)


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(store: RecordStore):
    """Return an async context manager that replaces the real lifespan.

    Builds the Authenticator from the pre-seeded test store with
    TEST_SECRET_KEY, bypassing get_settings() and the on-disk database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.record_store = store
        app.state.authenticator = Authenticator.from_store(store, TEST_SECRET_KEY, TEST_ROUNDS)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request: pytest.FixtureRequest) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with an isolated, seeded record store.

    The DB name includes the test module so modules never see each other's rows.
    """
    db_name = request.module.__name__.replace(".", "_")
    store = RecordStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    store.create_schema()
    seed(store)

    real_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    app.router.lifespan_context = real_lifespan
    store.close()
