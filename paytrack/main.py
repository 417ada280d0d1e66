"""
Paytrack — main.py
─────────────────────────────────────────────────────────────────
Central entry point. All routers mount here.

Start server:
    uvicorn paytrack.main:create_app --factory --port 3000
    # or
    python -m paytrack.main

File map:
    auth.py          → /api/login, /api/users/{id}
    devices.py       → /api/devices, /api/devices/{id}/balance
    transactions.py  → /api/transactions
    withdrawals.py   → /api/withdrawals     (transactional writes)
    support.py       → /api/support
    dashboard.py     → /api/dashboard/stats
    core/            → config, database, security, rate limit, errors
─────────────────────────────────────────────────────────────────
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from paytrack import __version__
from paytrack.core.config import Config
from paytrack.core.database import Database, connect_with_retry, create_database
from paytrack.core.errors import PersistenceError, register_error_handlers
from paytrack.core.ratelimit import RateLimiter, RateLimitMiddleware
from paytrack.core.security import TokenService

from paytrack.auth         import router as auth_router
from paytrack.devices      import router as devices_router
from paytrack.transactions import router as transactions_router
from paytrack.withdrawals  import router as withdrawals_router
from paytrack.support      import router as support_router
from paytrack.dashboard    import router as dashboard_router

logger = logging.getLogger("paytrack.main")


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level   = level.upper(),
        format  = "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt = "%Y-%m-%d %H:%M:%S",
    )


# ─────────────────────────────────────────────
# App factory
# ─────────────────────────────────────────────
def create_app(cfg: Config = None, db: Database = None) -> FastAPI:
    """
    Build the app around an explicit config + persistence object.
    Raises ConfigError (fail closed) when the signing secret is missing
    outside development.
    """
    cfg = (cfg or Config()).validate()
    setup_logging(cfg.LOG_LEVEL)
    db = db or create_database(cfg)

    # ── Startup / Shutdown ────────────────────
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"🚀 Paytrack starting {cfg!r}")

        async def bootstrap():
            # A schema the service cannot create is logged, not fatal;
            # the routes that depend on it fail on their own.
            if not cfg.DB_AUTO_CREATE:
                return
            try:
                await db.create_schema(cfg)
            except PersistenceError as e:
                logger.error(f"Schema bootstrap failed: {e}")

        async def keep_retrying():
            await asyncio.sleep(cfg.DB_RETRY_DELAY)
            await connect_with_retry(db, cfg.DB_RETRY_DELAY, on_connect=bootstrap)

        retry_task = None
        connected = await connect_with_retry(db, cfg.DB_RETRY_DELAY, max_attempts=1,
                                             on_connect=bootstrap)
        if not connected:
            logger.warning(f"⚠️  Database unavailable — retrying every {cfg.DB_RETRY_DELAY}s")
            retry_task = asyncio.create_task(keep_retrying())

        try:
            yield  # App runs here
        finally:
            try:
                if retry_task is not None:
                    retry_task.cancel()
                    with suppress(asyncio.CancelledError):
                        await retry_task
            finally:
                await db.close()
                logger.info("Paytrack shutting down.")

    app = FastAPI(
        title       = "Paytrack API",
        description = "Devices, transactions, withdrawals and support on a WordPress database",
        version     = __version__,
        docs_url    = "/docs"  if not cfg.is_production else None,
        redoc_url   = "/redoc" if not cfg.is_production else None,
        lifespan    = lifespan,
    )

    app.state.cfg = cfg
    app.state.db = db
    app.state.tokens = TokenService(cfg.JWT_SECRET, cfg.JWT_ALGORITHM, cfg.TOKEN_TTL_HOURS)
    app.state.limiter = RateLimiter(cfg.RATE_LIMIT_MAX, cfg.RATE_LIMIT_WINDOW_SECONDS)

    # ── Middleware (last added runs first) ────
    app.add_middleware(
        RateLimitMiddleware,
        limiter     = app.state.limiter,
        message     = cfg.RATE_LIMIT_MESSAGE,
        path_prefix = "/api/",
        trust_proxy = cfg.TRUST_PROXY,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins = cfg.cors_origins,
        allow_methods = ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers = ["Content-Type", "Authorization"],
    )

    register_error_handlers(app)

    # ── Routers ───────────────────────────────
    app.include_router(auth_router)
    app.include_router(devices_router)
    app.include_router(transactions_router)
    app.include_router(withdrawals_router)
    app.include_router(support_router)
    app.include_router(dashboard_router)

    # ── Health ────────────────────────────────
    @app.get("/api/health", tags=["system"])
    async def health():
        """Liveness + DB connectivity. Stays 200 while the DB is down."""
        connected = await db.ping()
        return {
            "status":      "ok" if connected else "degraded",
            "timestamp":   datetime.now(timezone.utc).isoformat(),
            "database":    "connected" if connected else "disconnected",
            "environment": cfg.ENV,
        }

    return app


# ─────────────────────────────────────────────
# Run
# ─────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn

    settings = Config()
    uvicorn.run(
        "paytrack.main:create_app",
        factory = True,
        host    = settings.HOST,
        port    = settings.PORT,
        reload  = settings.is_dev,
    )
