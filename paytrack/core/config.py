"""
Paytrack — core/config.py
─────────────────────────────────────────────────────────────────
Single source of truth for ALL environment variables.

Every other file reads settings from a Config instance; the app
factory builds one from the environment, tests build their own.

Usage:
    from paytrack.core.config import Config

    cfg = Config()
    cfg.validate()
    print(cfg.DB_PATH)

    test_cfg = Config(ENV="test", JWT_SECRET="x", DB_PATH="/tmp/t.db")
─────────────────────────────────────────────────────────────────
"""

import os
import logging
import secrets
from dotenv import load_dotenv
from fastapi import Request

load_dotenv()

logger = logging.getLogger("paytrack.config")


class ConfigError(Exception):
    """Configuration is unusable (missing secret, bad value)."""


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


class Config:
    def __init__(self, **overrides):
        # ── App ───────────────────────────────────
        self.ENV:       str = os.getenv("ENV", "development")   # "production" in prod
        self.HOST:      str = os.getenv("HOST", "0.0.0.0")
        self.PORT:      int = _int("PORT", 3000)
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

        # ── Security ──────────────────────────────
        self.JWT_SECRET:      str = os.getenv("JWT_SECRET", "")
        self.JWT_ALGORITHM:   str = os.getenv("JWT_ALGORITHM", "HS256")
        self.TOKEN_TTL_HOURS: int = _int("TOKEN_TTL_HOURS", 24)

        # ── Database ──────────────────────────────
        # DB_HOST set → MySQL (WordPress). Otherwise a local SQLite file.
        self.DB_HOST:     str = os.getenv("DB_HOST", "")
        self.DB_PORT:     int = _int("DB_PORT", 3306)
        self.DB_USER:     str = os.getenv("DB_USER", "")
        self.DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
        self.DB_NAME:     str = os.getenv("DB_NAME", "")
        self.DB_SSL:      bool = _flag("DB_SSL", True)
        self.DB_SSL_REJECT_UNAUTHORIZED: bool = _flag("DB_SSL_REJECT_UNAUTHORIZED", True)
        self.DB_PATH:        str = os.getenv("DB_PATH", "paytrack.db")
        self.DB_POOL_SIZE:   int = _int("DB_POOL_SIZE", 10)
        self.DB_RETRY_DELAY: float = float(_int("DB_RETRY_DELAY", 5))
        self.DB_AUTO_CREATE: bool = _flag("DB_AUTO_CREATE", self.ENV != "production")
        self.TABLE_PREFIX:   str = os.getenv("TABLE_PREFIX", "wp_")

        # ── Withdrawals ───────────────────────────
        self.DEFAULT_PAYMENT_METHOD: str = os.getenv("DEFAULT_PAYMENT_METHOD", "M-Pesa")

        # ── Rate limiting ─────────────────────────
        self.RATE_LIMIT_MAX:            int = _int("RATE_LIMIT_MAX", 100)
        self.RATE_LIMIT_WINDOW_SECONDS: int = _int("RATE_LIMIT_WINDOW_SECONDS", 15 * 60)
        self.RATE_LIMIT_MESSAGE: str = os.getenv(
            "RATE_LIMIT_MESSAGE",
            "Too many requests from this IP, please try again later",
        )
        self.TRUST_PROXY: bool = _flag("TRUST_PROXY", False)

        # ── CORS ──────────────────────────────────
        self.ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "*")

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise ConfigError(f"Unknown setting: {key}")
            setattr(self, key, value)

    # ── Shortcuts ─────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.ENV == "production"

    @property
    def is_dev(self) -> bool:
        return self.ENV == "development"

    @property
    def use_mysql(self) -> bool:
        return bool(self.DB_HOST)

    @property
    def cors_origins(self) -> list:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    def table(self, name: str) -> str:
        """WordPress table name with prefix: table("users") → "wp_users"."""
        return f"{self.TABLE_PREFIX}{name}"

    def validate(self) -> "Config":
        """
        Fail closed on a missing signing secret.

        Development gets a random per-process secret (tokens die with
        the process); every other environment refuses to start.
        """
        if not self.JWT_SECRET:
            if not self.is_dev:
                raise ConfigError(f"JWT_SECRET must be set when ENV={self.ENV}")
            self.JWT_SECRET = secrets.token_urlsafe(48)
            logger.warning("⚠️  JWT_SECRET not set — using a random development secret")

        if self.TOKEN_TTL_HOURS <= 0:
            raise ConfigError("TOKEN_TTL_HOURS must be positive")
        if self.DB_POOL_SIZE <= 0:
            raise ConfigError("DB_POOL_SIZE must be positive")
        if self.RATE_LIMIT_MAX <= 0 or self.RATE_LIMIT_WINDOW_SECONDS <= 0:
            raise ConfigError("Rate limit settings must be positive")
        if self.use_mysql and not self.DB_NAME:
            raise ConfigError("DB_NAME must be set when DB_HOST is set")
        return self

    def __repr__(self):
        return (
            f"<Config env={self.ENV} "
            f"db={'mysql' if self.use_mysql else 'sqlite'} "
            f"secret={'✓' if self.JWT_SECRET else '✗'}>"
        )


def get_config(request: Request) -> Config:
    """Route dependency: the Config the app was built with."""
    return request.app.state.cfg
