"""Tests for startup connect-with-retry and the app lifespan."""

import sqlite3
import threading
import time
from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

from paytrack.core.config import Config
from paytrack.core.database import Database, connect_with_retry
from paytrack.core.errors import PersistenceError
from paytrack.main import create_app

from tests.conftest import TEST_SECRET


class _Scope:
    async def fetch_all(self, sql, params=()):
        return []

    async def fetch_one(self, sql, params=()):
        return {"ok": 1}

    async def execute(self, sql, params=()):
        return 0


class FlakyDatabase(Database):
    """Refuses to connect `failures` times, or until `available` is set."""

    backend = "flaky"

    def __init__(self, failures: int = 0, available: threading.Event = None,
                 schema_error: str = None):
        super().__init__(pool_size=1)
        self.failures = failures
        self.available = available
        self.schema_error = schema_error
        self.attempts = 0
        self.closed = False

    async def connect(self):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise PersistenceError("connection refused")
        if self.available is not None and not self.available.is_set():
            raise PersistenceError("connection refused")
        self._connected = True

    async def close(self):
        self._connected = False
        self.closed = True

    @asynccontextmanager
    async def session(self):
        yield _Scope()

    @asynccontextmanager
    async def transaction(self):
        yield _Scope()

    async def create_schema(self, cfg):
        if self.schema_error:
            raise PersistenceError(self.schema_error)


def _config(**overrides) -> Config:
    settings = dict(ENV="test", JWT_SECRET=TEST_SECRET, DB_HOST="",
                    DB_RETRY_DELAY=0.01, DB_AUTO_CREATE=False, RATE_LIMIT_MAX=10_000,
                    LOG_LEVEL="WARNING")
    settings.update(overrides)
    return Config(**settings)


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


class TestConnectWithRetry:
    @pytest.mark.asyncio
    async def test_retries_until_connected(self):
        db = FlakyDatabase(failures=2)

        assert await connect_with_retry(db, delay=0.01) is True
        assert db.attempts == 3
        assert db.is_connected

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        db = FlakyDatabase(failures=5)

        assert await connect_with_retry(db, delay=0.01, max_attempts=2) is False
        assert db.attempts == 2
        assert not db.is_connected

    @pytest.mark.asyncio
    async def test_runs_hook_once_connected(self):
        db = FlakyDatabase(failures=1)
        calls = []

        async def on_connect():
            calls.append(db.attempts)

        await connect_with_retry(db, delay=0.01, on_connect=on_connect)

        assert calls == [2]


class TestLifespan:
    def test_health_recovers_once_background_retry_connects(self):
        available = threading.Event()
        db = FlakyDatabase(available=available)

        with TestClient(create_app(_config(), db=db)) as client:
            first = client.get("/api/health").json()
            available.set()
            recovered = _wait_for(lambda: client.get("/api/health").json()["status"] == "ok")

        assert first["status"] == "degraded"
        assert first["database"] == "disconnected"
        assert recovered
        assert db.attempts >= 2
        assert db.closed

    def test_schema_failure_does_not_stop_startup(self):
        db = FlakyDatabase(schema_error="no such column: account_no")

        with TestClient(create_app(_config(DB_AUTO_CREATE=True), db=db)) as client:
            health = client.get("/api/health").json()

        assert health["status"] == "ok"
        assert db.closed

    def test_schema_failure_after_late_connect_keeps_shutdown_clean(self):
        available = threading.Event()
        db = FlakyDatabase(available=available, schema_error="disk I/O error")

        with TestClient(create_app(_config(DB_AUTO_CREATE=True), db=db)) as client:
            available.set()
            assert _wait_for(lambda: client.get("/api/health").json()["status"] == "ok")

        assert db.closed

    def test_legacy_devices_table_without_account_column(self, tmp_path):
        path = str(tmp_path / "legacy.db")
        conn = sqlite3.connect(path)
        conn.execute("CREATE TABLE wp_devices (device_id INTEGER PRIMARY KEY, device_name TEXT)")
        conn.commit()
        conn.close()

        with TestClient(create_app(_config(DB_PATH=path, DB_AUTO_CREATE=True))) as client:
            health = client.get("/api/health").json()

        assert health["status"] == "ok"
