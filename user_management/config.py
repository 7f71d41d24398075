from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import logging
import os
from urllib.parse import urlparse

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEVELOPMENT_JWT_SECRET = "dev-secret-change-me"

_BACKEND_SCHEMES = {
    "postgres": "postgres",
    "postgresql": "postgres",
    "sqlite": "sqlite",
    "": "sqlite",
}


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Runtime configuration values exposed to FastAPI components."""

    app_name: str = "user-management"
    version: str = "0.1.0"
    environment: str = os.getenv("APP_ENV", "development").lower()
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./user_management.sqlite3")
    database_backend: str = os.getenv("DATABASE_BACKEND", "").lower()
    http_host: str = os.getenv("HTTP_HOST", "0.0.0.0")
    http_port: int = int(os.getenv("HTTP_PORT", "5000"))
    jwt_secret: str = os.getenv("JWT_SECRET", "")
    jwt_issuer: str = os.getenv("JWT_ISSUER", "user-management")
    jwt_ttl_seconds: int = int(os.getenv("JWT_TTL_SECONDS", "3600"))
    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "12"))
    cors_origins: tuple[str, ...] = field(
        default_factory=lambda: _split_csv(os.getenv("CORS_ORIGINS", "http://localhost:3000"))
    )
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def signing_secret(self) -> str:
        """Return the token signing secret, refusing to run in production without one."""
        if self.jwt_secret:
            return self.jwt_secret
        if self.is_production:
            raise ConfigurationError("JWT_SECRET must be set in production")
        logger.warning("JWT_SECRET not set, using the development signing secret")
        return DEVELOPMENT_JWT_SECRET

    def store_backend(self) -> str:
        """Resolve the credential store backend from configuration."""
        if self.database_backend:
            if self.database_backend not in ("postgres", "sqlite"):
                raise ConfigurationError(f"unknown DATABASE_BACKEND {self.database_backend!r}")
            return self.database_backend
        scheme = urlparse(self.database_url).scheme.lower()
        try:
            return _BACKEND_SCHEMES[scheme]
        except KeyError:
            raise ConfigurationError(f"unsupported DATABASE_URL scheme {scheme!r}") from None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings()
