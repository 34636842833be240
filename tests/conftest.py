"""
tests/conftest.py -- Shared test fixtures for the identity service.

This module provides:
  - test_settings: Settings with fixed, distinct secrets and bcrypt cost 4
  - RecordingGateway: in-memory mail gateway that records or fails deliveries
  - store / workflow: unit-level fixtures over an in-memory SQLite store
  - api_client: TestClient over https://testserver with a patched lifespan

Environment variables must be set before any api/ or core/ import: the app
module reads get_settings() at import time for middleware and rate limits.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

# CRITICAL: set before importing api/ -- dev mode secrets, TestClient host,
# and no rate limiting across the many login calls in the suite.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenService
from auth.workflow import IdentityWorkflow
from core.config import Settings

INVITE_SECRET = "invite-secret-for-tests-0123456789abcdef"
ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"

FRONTEND_URL = "https://news.example"


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


@dataclass
class SentMail:
    recipient: str
    subject: str
    body: str


@dataclass
class RecordingGateway:
    """Mail gateway double. fail=True makes every delivery report failure;
    delay keeps send() pending that many seconds before answering."""

    fail: bool = False
    delay: float = 0.0
    sent: list[SentMail] = field(default_factory=list)

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            return False
        self.sent.append(SentMail(recipient, subject, body))
        return True


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        debug=True,
        invite_token_secret=INVITE_SECRET,
        access_token_secret=ACCESS_SECRET,
        refresh_token_secret=REFRESH_SECRET,
        bcrypt_rounds=4,
        frontend_url=FRONTEND_URL,
        secure_cookies=True,
    )


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(INVITE_SECRET, ACCESS_SECRET, REFRESH_SECRET)


@pytest.fixture
def make_tokens():
    """Factory for a TokenService whose clock runs `offset` away from real time."""

    def _make(offset: timedelta = timedelta(0)) -> TokenService:
        return TokenService(
            INVITE_SECRET,
            ACCESS_SECRET,
            REFRESH_SECRET,
            clock=lambda: datetime.now(timezone.utc) + offset,
        )

    return _make


@pytest.fixture
def refresh_secret() -> str:
    return REFRESH_SECRET


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


def _build_workflow(store: UserStore, tokens: TokenService, hasher: PasswordHasher, gateway) -> IdentityWorkflow:
    return IdentityWorkflow(
        store=store,
        hasher=hasher,
        tokens=tokens,
        gateway=gateway,
        frontend_url=FRONTEND_URL,
        notification_timeout=0.5,
    )


@pytest.fixture
def workflow(store, tokens, hasher, gateway) -> IdentityWorkflow:
    return _build_workflow(store, tokens, hasher, gateway)


@pytest.fixture
def make_workflow():
    """Factory for workflows over a caller-chosen store and gateway."""
    return _build_workflow


@pytest.fixture
def file_store(tmp_path: Path) -> Generator[UserStore, None, None]:
    """UserStore over a SQLite file, for tests that use several threads."""
    s = UserStore(f"sqlite:///{tmp_path / 'users.db'}")
    yield s
    s.close()


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    client: TestClient
    workflow: IdentityWorkflow
    gateway: RecordingGateway
    store: UserStore


def _patch_lifespan(settings: Settings, store: UserStore, workflow: IdentityWorkflow):
    """Return a lifespan that wires test objects into app.state instead of
    building them from the environment."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.user_store = store
        app.state.workflow = workflow
        yield

    return test_lifespan


@pytest.fixture
def api_client(tmp_path: Path, test_settings: Settings, tokens, hasher) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness backed by a fresh SQLite file per test.

    A file DB (not :memory:) because TestClient runs sync handlers in worker
    threads, and each thread would otherwise see its own empty database.
    base_url is https so the client's cookie jar stores and returns Secure
    cookies like a browser would.
    """
    store = UserStore(f"sqlite:///{tmp_path / 'identity.db'}")
    gateway = RecordingGateway()
    workflow = _build_workflow(store, tokens, hasher, gateway)

    app.router.lifespan_context = _patch_lifespan(test_settings, store, workflow)

    with TestClient(app, base_url="https://testserver", raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, workflow=workflow, gateway=gateway, store=store)

    store.close()
