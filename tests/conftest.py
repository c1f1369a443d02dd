"""
tests/conftest.py -- Shared test fixtures for the accounts service.

This module provides:
  - user_store: an isolated UserStore on a temp-file SQLite DB
  - client: TestClient over the real app, lifespan patched to use user_store
  - make_user: seed accounts directly in the store

Design: temp-file SQLite (not :memory:) because TestClient runs sync route
handlers in a thread pool and the concurrency tests insert from several
threads. Every connection must see the same database.

DEBUG and BCRYPT_ROUNDS must be set before any auth/core import so
get_settings() auto-generates SECRET_KEY and hashing stays fast.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: set before importing anything that calls get_settings().
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.passwords import hash_password
from auth.store import UserStore


def _patch_lifespan(user_store: UserStore):
    """Return a lifespan that wires the test store into app.state.

    The OAuth registry is a MagicMock so no test can reach a real provider.
    Tests that exercise the OAuth routes replace app.state.oauth themselves.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.oauth = MagicMock()
        yield

    return test_lifespan


@pytest.fixture
def user_store(tmp_path) -> Generator[UserStore, None, None]:
    store = UserStore(db_url=f"sqlite:///{tmp_path / 'accounts.db'}")
    yield store
    store.close()


@pytest.fixture
def client(user_store: UserStore) -> Generator[TestClient, None, None]:
    """TestClient over the real app with an isolated store per test."""
    app.router.lifespan_context = _patch_lifespan(user_store)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture
def make_user(user_store: UserStore) -> Callable[..., User]:
    """Create a user directly in the store, bypassing the register route."""

    def _make(
        email: str = "jane@example.com",
        password: str = "correct-horse",
        first_name: str = "Jane",
        last_name: str = "Doe",
        roles: list[str] | None = None,
    ) -> User:
        return user_store.create(
            User(
                email=email,
                first_name=first_name,
                last_name=last_name,
                hashed_password=hash_password(password),
                roles=roles or ["user"],
            )
        )

    return _make
