"""
tests/conftest.py -- Shared test fixtures for authgate.

This module provides:
  - store:    UserStore on an isolated named shared-memory SQLite DB
  - issuer:   TokenIssuer signing with the test SECRET_KEY
  - mailer:   MagicMock standing in for ResendMailer (no network)
  - mailed_token: callable returning the token from the last mailed link
  - oauth:    MagicMock standing in for OAuthProfileFetcher (no network)
  - sessions: SessionManager wired to all of the above
  - client:   TestClient on the real FastAPI app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
Each test gets its own DB name, so tests never see each other's users.

DEBUG and BCRYPT_ROUNDS must be set before any api/ or core/ import:
DEBUG lets get_settings() generate a SECRET_KEY, and rounds=4 keeps bcrypt
from dominating the test run.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

# CRITICAL: set before any core/auth/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import get_settings

TEST_ROUNDS = 4


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url=url)
    yield user_store
    user_store.close()


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(get_settings().secret_key)


@pytest.fixture
def mailer() -> MagicMock:
    return MagicMock()


@pytest.fixture
def oauth() -> MagicMock:
    fetcher = MagicMock()
    fetcher.fetch_profile = AsyncMock()
    fetcher.authorization_url = AsyncMock(return_value="https://accounts.example.com/authorize?client_id=x")
    fetcher.enabled_providers.return_value = ["google", "github"]
    return fetcher


@pytest.fixture
def mailed_token(mailer: MagicMock):
    """Return a callable giving the token from the latest send_verification_link() call."""

    def _latest() -> str:
        _email, token = mailer.send_verification_link.call_args.args
        return token

    return _latest


@pytest.fixture
def sessions(store: UserStore, issuer: TokenIssuer, mailer: MagicMock, oauth: MagicMock) -> SessionManager:
    return SessionManager(store, issuer, mailer, oauth=oauth, bcrypt_rounds=TEST_ROUNDS)


def _patch_lifespan(store: UserStore, oauth: MagicMock, sessions: SessionManager):
    """Return a lifespan that wires the test collaborators into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.user_store = store
        app.state.oauth = oauth
        app.state.sessions = sessions
        yield

    return test_lifespan


@pytest.fixture
def client(store: UserStore, oauth: MagicMock, sessions: SessionManager) -> Generator[TestClient, None, None]:
    """TestClient against the real app.

    follow_redirects=False so OAuth tests can assert on Location headers.
    """
    app.router.lifespan_context = _patch_lifespan(store, oauth, sessions)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as test_client:
        yield test_client
