"""
tests/conftest.py -- Shared test fixtures for orgauth.

This module provides:
  - StubResolver: records calls and returns a fixed ID (or raises)
  - storage / resolver / backend: isolated in-memory backend per test
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Environment must be prepared before any api/ or core/ import:
  DEBUG=true               so Settings() does not refuse to start
  OPERATOR_TOKEN           a known token for Authorization headers
  CONFIG_WRITE_RATE_LIMIT  high enough that ordinary tests never hit 429
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

# CRITICAL: set before any core/api import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("OPERATOR_TOKEN", "test-operator-token-0123456789abcdef0123456789")
os.environ.setdefault("CONFIG_WRITE_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from backend.handlers import GitHubConfigBackend
from core.config import get_settings
from core.errors import ResolutionError, StorageError
from storage.store import InMemoryStorage

TEST_ORG_ID = 1234567


# ---------------------------------------------------------------------------
# Resolver stub
# ---------------------------------------------------------------------------


class StubResolver:
    """Stands in for OrganizationResolver. No network.

    org_id: value returned by resolve(). 0 mimics GitHub answering with no ID,
            which the real resolver reports as ResolutionError.
    error:  if set, resolve() raises ResolutionError(error).
    """

    def __init__(self, org_id: int = TEST_ORG_ID, error: Optional[str] = None) -> None:
        self.org_id = org_id
        self.error = error
        self.calls: list[tuple[str, Optional[str]]] = []

    async def resolve(self, organization: str, base_url_override: Optional[str] = None) -> int:
        self.calls.append((organization, base_url_override))
        if self.error:
            raise ResolutionError(self.error)
        if self.org_id == 0:
            raise ResolutionError(f"organization_id not found for {organization}")
        return self.org_id


class FailingStorage(InMemoryStorage):
    """InMemoryStorage whose put() always fails, optionally get() too."""

    def __init__(self, fail_get: bool = False) -> None:
        super().__init__()
        self.fail_get = fail_get

    def get(self, key: str) -> bytes | None:
        if self.fail_get:
            raise StorageError(f"failed to read {key!r}: disk on fire")
        return super().get(key)

    def put(self, key: str, value: bytes) -> None:
        raise StorageError(f"failed to write {key!r}: disk on fire")


# ---------------------------------------------------------------------------
# Backend fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def resolver() -> StubResolver:
    return StubResolver()


@pytest.fixture
def backend(storage: InMemoryStorage, resolver: StubResolver) -> GitHubConfigBackend:
    return GitHubConfigBackend(storage, resolver)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    client: TestClient
    headers: dict[str, str]
    storage: InMemoryStorage
    resolver: StubResolver


def _patch_lifespan(backend: GitHubConfigBackend):
    """Return a lifespan that wires the given backend instead of the real one."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.storage = backend.storage
        app.state.backend = backend
        yield

    return test_lifespan


@pytest.fixture
def api_client(storage: InMemoryStorage, resolver: StubResolver) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness with a fresh in-memory backend.

    base_url is http://localhost so TrustedHostMiddleware accepts the Host
    header. The operator token comes from Settings, as the server sees it.
    """
    backend = GitHubConfigBackend(storage, resolver)
    app.router.lifespan_context = _patch_lifespan(backend)
    headers = {"Authorization": f"Bearer {get_settings().operator_token}"}

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, headers=headers, storage=storage, resolver=resolver)

    limiter.reset()
