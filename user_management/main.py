"""FastAPI application wiring for the user management service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
import logging
from typing import Callable

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .api.routes import router as api_router
from .config import Settings, get_settings
from .domain.contracts import AccountStore
from .domain.service import AccountService
from .security.guard import AccessGuard
from .security.passwords import PasswordHasher
from .security.tokens import TokenIssuer
from .sqlite_repository import SqliteAccountRepository, sqlite_path_from_url

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Components:
    """Long-lived objects shared by every request for the app lifecycle."""

    store: AccountStore
    service: AccountService
    guard: AccessGuard
    close: Callable[[], None]


def _build_store(settings: Settings) -> tuple[AccountStore, Callable[[], None]]:
    """Instantiate the configured credential store backend and its shutdown hook."""
    backend = settings.store_backend()
    if backend == "postgres":
        from psycopg_pool import ConnectionPool

        from .repository import PostgresAccountRepository

        pool = ConnectionPool(settings.database_url, open=False)
        pool.open()
        logger.info("credential store configured for postgres backend")

        def close() -> None:
            pool.close()

        return PostgresAccountRepository(pool), close

    path = sqlite_path_from_url(settings.database_url)
    logger.info("credential store using sqlite backend at %s", path)
    return SqliteAccountRepository(path), lambda: None


def build_components(settings: Settings) -> Components:
    """Validate configuration and construct the store, service, and guard."""
    secret = settings.signing_secret()
    tokens = TokenIssuer(secret, issuer=settings.jwt_issuer, ttl_seconds=settings.jwt_ttl_seconds)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    store, close = _build_store(settings)
    try:
        store.init_schema()
    except Exception:
        close()
        raise
    return Components(
        store=store,
        service=AccountService(store, hasher, tokens),
        guard=AccessGuard(tokens, store),
        close=close,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialise shared resources (store, services) for the app lifecycle."""
        logging.getLogger("user_management").setLevel(settings.log_level)
        components = build_components(settings)
        app.state.account_service = components.service
        app.state.access_guard = components.guard
        try:
            yield
        finally:
            components.close()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=600,
    )

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        """Return a minimal readiness indicator used by orchestration systems."""
        return {"status": "ok"}

    app.include_router(api_router)

    # Prometheus metrics endpoint for Prometheus scrapes
    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.http_host, port=settings.http_port)
