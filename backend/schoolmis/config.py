"""Application configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_DOTENV_PATH = os.path.join(_BASE_DIR, ".env")


class ConfigError(RuntimeError):
    """Raised when configuration values are missing or invalid."""


def load_env_file(path: str = _DOTENV_PATH) -> bool:
    """Load ``backend/.env`` into the process environment if it exists."""

    if os.path.exists(path):
        return load_dotenv(path)
    return False


@dataclass(frozen=True)
class Settings:
    mongo_uri: str | None = None
    mongo_db: str | None = None
    secret_key: str = "dev-secret-key"
    session_cookie_name: str = "schoolmis_session"
    admin_user: str = "admin"
    admin_pass: str = "admin"
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``environ`` (defaults to ``os.environ``)."""

        if environ is None:
            load_env_file()
            environ = os.environ

        def _get(name: str, default: str | None = None) -> str | None:
            value = environ.get(name)
            if value is None or not value.strip():
                return default
            return value.strip()

        return cls(
            mongo_uri=_get("MONGODB_URI"),
            mongo_db=_get("MONGODB_DB"),
            secret_key=_get("SECRET_KEY", cls.secret_key),
            session_cookie_name=_get("SESSION_COOKIE_NAME", cls.session_cookie_name),
            admin_user=_get("ADMIN_USER", cls.admin_user),
            admin_pass=_get("ADMIN_PASS", cls.admin_pass),
            frontend_url=_get("FRONTEND_URL", cls.frontend_url),
            log_level=(_get("LOG_LEVEL", cls.log_level) or cls.log_level).upper(),
        )

    def default_secrets(self) -> list[str]:
        """Return the names of credentials still set to their shipped defaults."""

        return [
            name
            for name in ("secret_key", "admin_pass")
            if getattr(self, name) == getattr(type(self), name)
        ]

    def get_mongo_uri(self) -> str:
        """Return the MongoDB connection string."""

        if not self.mongo_uri:
            raise ConfigError("MONGODB_URI is not set. Define it in backend/.env.")
        return self.mongo_uri

    def get_db_name(self) -> str:
        """Return the database name from MONGODB_DB or the MongoDB URI path."""

        if self.mongo_db:
            return self.mongo_db

        uri = self.get_mongo_uri()
        main = uri.split("?", 1)[0].rstrip("/")
        if not main:
            raise ConfigError(
                "Database name not found. Provide it via MONGODB_URI or MONGODB_DB."
            )

        if "://" in main:
            after_scheme = main.split("://", 1)[1]
        else:
            after_scheme = main

        if "/" not in after_scheme:
            raise ConfigError(
                "Database name not found. Provide it via MONGODB_URI or MONGODB_DB."
            )

        candidate = after_scheme.split("/", 1)[1]
        if not candidate:
            raise ConfigError(
                "Database name not found. Provide it via MONGODB_URI or MONGODB_DB."
            )
        return candidate


__all__ = ["ConfigError", "Settings", "load_env_file"]
