from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from user_management.api import routes
from user_management.domain.service import AccountService
from user_management.security.guard import AccessGuard
from user_management.security.passwords import PasswordHasher
from user_management.security.tokens import TokenIssuer
from user_management.sqlite_repository import SqliteAccountRepository

TEST_SECRET = "test-secret-with-enough-bytes-for-hs256"
TEST_ISSUER = "user-management.test"


@pytest.fixture
def store(tmp_path) -> SqliteAccountRepository:
    """A real SQLite store in a throwaway file so constraints are enforced by the database."""
    repository = SqliteAccountRepository(tmp_path / "users.sqlite3")
    repository.init_schema()
    return repository


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET, issuer=TEST_ISSUER, ttl_seconds=3600)


@pytest.fixture
def service(store, hasher, tokens) -> AccountService:
    return AccountService(store, hasher, tokens)


@pytest.fixture
def guard(store, tokens) -> AccessGuard:
    return AccessGuard(tokens, store)


@pytest.fixture
def api_client(service, guard):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    app.state.account_service = service
    app.state.access_guard = guard

    with TestClient(app) as client:
        yield client
