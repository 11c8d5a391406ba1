"""
tests/conftest.py -- Shared test fixtures for RxAuth.

This module provides:
  - FakeClock: a settable epoch-seconds clock injected into TokenService and
    LoginThrottle so expiry and lockout windows can be crossed without sleeping
  - hasher / tokens / throttle / service: isolated core instances per test
  - api_client: TestClient whose lifespan wires a test AuthService into
    app.state, bypassing the real startup

bcrypt runs at cost 4 (its minimum) in tests. The production default of 10 is
covered by settings tests, not by hashing hundreds of passwords at full cost.

DEBUG must be set before any core/api import so get_settings() auto-generates
signing secrets in dev mode instead of raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any core/api import.
os.environ.setdefault("DEBUG", "true")
# The per-IP login limit would trip across a module's worth of login calls.
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import AccessLevel, UserRole
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import InMemoryUserStore
from auth.throttle import LoginThrottle
from auth.tokens import TokenService

ACCESS_SECRET = "a" * 40 + "-access-signing-secret"
REFRESH_SECRET = "r" * 40 + "-refresh-signing-secret"
START_TIME = 1_700_000_000.0

STRONG_PASSWORD = "Str0ng!Pass123"


class FakeClock:
    """Callable clock returning a settable epoch time."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens(clock: FakeClock) -> TokenService:
    return TokenService(ACCESS_SECRET, REFRESH_SECRET, "24h", "7d", clock=clock)


@pytest.fixture
def throttle(clock: FakeClock) -> LoginThrottle:
    return LoginThrottle(max_attempts=5, window_seconds=15 * 60, clock=clock)


@pytest.fixture
def store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def service(
    store: InMemoryUserStore, hasher: PasswordHasher, tokens: TokenService, throttle: LoginThrottle
) -> AuthService:
    return AuthService(store, hasher, tokens, throttle)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(service: AuthService):
    """Return a lifespan that wires a pre-built AuthService into app.state.

    The purge_task is a long-sleeping coroutine so shutdown has a real
    asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth_service = service
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture
def api_client(service: AuthService) -> Generator[TestClient, None, None]:
    """Yield a TestClient backed by the test's own AuthService."""
    app.router.lifespan_context = _patch_lifespan(service)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture
def admin_token(service: AuthService) -> str:
    """Register an admin (role admin, access level ADMIN) and return its access token."""
    profile = service.register("admin@rx.example", STRONG_PASSWORD, "Admin")
    service.update_role(profile.id, UserRole.ADMIN)
    service.update_access_level(profile.id, AccessLevel.ADMIN)
    return service.login("admin@rx.example", STRONG_PASSWORD).access_token
