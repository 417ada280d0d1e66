"""
Paytrack — core/database.py
─────────────────────────────────────────────────────────────────
Single place for:
  - the persistence-access object every route receives
  - SQLite (dev / tests) and MySQL (WordPress) backends
  - transactional scopes with guaranteed rollback + release
  - startup connect-with-retry

SQL is written once with "?" placeholders. The MySQL backend
rewrites them to "%s" before handing them to the driver.

Usage:
    from paytrack.core.database import create_database

    db = create_database(cfg)
    await db.connect()

    rows = await db.fetch_all("SELECT * FROM wp_devices WHERE account_no = ?", (1,))

    async with db.transaction() as tx:
        new_id = await tx.execute("INSERT INTO ...", (...))
─────────────────────────────────────────────────────────────────
"""

import ssl
import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import aiomysql
import aiosqlite
from fastapi import Request

from paytrack.core.config import Config
from paytrack.core.errors import DuplicateKeyError, PersistenceError
from paytrack.models import schema_statements

logger = logging.getLogger("paytrack.database")

Params = Sequence[Any]


# ─────────────────────────────────────────────
# Base
# ─────────────────────────────────────────────
class Scope(ABC):
    """One connection's worth of queries (plain or inside a transaction)."""

    @abstractmethod
    async def fetch_all(self, sql: str, params: Params = ()) -> List[dict]: ...

    @abstractmethod
    async def fetch_one(self, sql: str, params: Params = ()) -> Optional[dict]: ...

    @abstractmethod
    async def execute(self, sql: str, params: Params = ()) -> int:
        """Run a write. Returns the last inserted row id (0 if none)."""


class Database(ABC):
    """
    Injected into the app at construction time (app.state.db).
    Routes never import a global pool.
    """

    backend = "base"

    def __init__(self, pool_size: int = 10):
        self.pool_size = pool_size
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @abstractmethod
    async def connect(self): ...

    @abstractmethod
    async def close(self): ...

    @abstractmethod
    def session(self):
        """Async context manager yielding a non-transactional Scope."""

    @abstractmethod
    def transaction(self):
        """
        Async context manager yielding a Scope bound to one connection.
        Commits on clean exit; rolls back in full on any exception;
        always releases the connection.
        """

    async def fetch_all(self, sql: str, params: Params = ()) -> List[dict]:
        async with self.session() as scope:
            return await scope.fetch_all(sql, params)

    async def fetch_one(self, sql: str, params: Params = ()) -> Optional[dict]:
        async with self.session() as scope:
            return await scope.fetch_one(sql, params)

    async def execute(self, sql: str, params: Params = ()) -> int:
        async with self.transaction() as tx:
            return await tx.execute(sql, params)

    async def ping(self) -> bool:
        if not self._connected:
            return False
        try:
            await self.fetch_one("SELECT 1 AS ok")
            return True
        except PersistenceError as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def create_schema(self, cfg: Config):
        logger.info(f"Schema managed externally — skipping bootstrap ({self.backend})")


# ─────────────────────────────────────────────
# SQLite
# ─────────────────────────────────────────────
class _SQLiteScope(Scope):
    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def fetch_all(self, sql, params=()):
        try:
            async with self._conn.execute(sql, tuple(params)) as cur:
                rows = await cur.fetchall()
        except aiosqlite.Error as e:
            raise PersistenceError(f"query failed: {e}") from e
        return [dict(r) for r in rows]

    async def fetch_one(self, sql, params=()):
        try:
            async with self._conn.execute(sql, tuple(params)) as cur:
                row = await cur.fetchone()
        except aiosqlite.Error as e:
            raise PersistenceError(f"query failed: {e}") from e
        return dict(row) if row else None

    async def execute(self, sql, params=()):
        try:
            cur = await self._conn.execute(sql, tuple(params))
            row_id = cur.lastrowid or 0
            await cur.close()
        except aiosqlite.IntegrityError as e:
            if "UNIQUE constraint failed" in str(e):
                raise DuplicateKeyError(f"duplicate key: {e}") from e
            raise PersistenceError(f"write failed: {e}") from e
        except aiosqlite.Error as e:
            raise PersistenceError(f"write failed: {e}") from e
        return row_id


class SQLiteDatabase(Database):
    """
    A connection per unit of work, as aiosqlite expects.
    The semaphore bounds how many are open at once.
    """

    backend = "sqlite"

    def __init__(self, path: str, pool_size: int = 10):
        super().__init__(pool_size)
        self.path = str(path)
        self._slots: Optional[asyncio.Semaphore] = None

    async def connect(self):
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.execute("SELECT 1")
        except (aiosqlite.Error, OSError) as e:
            raise PersistenceError(f"cannot open {self.path}: {e}") from e
        self._slots = asyncio.Semaphore(self.pool_size)
        self._connected = True

    async def close(self):
        self._connected = False

    @asynccontextmanager
    async def _connection(self):
        if not self._connected:
            raise PersistenceError("database not connected")
        async with self._slots:
            try:
                conn = await aiosqlite.connect(self.path)
            except (aiosqlite.Error, OSError) as e:
                raise PersistenceError(f"cannot open {self.path}: {e}") from e
            conn.row_factory = aiosqlite.Row
            try:
                yield conn
            finally:
                await conn.close()

    @asynccontextmanager
    async def session(self):
        async with self._connection() as conn:
            yield _SQLiteScope(conn)

    @asynccontextmanager
    async def transaction(self):
        async with self._connection() as conn:
            try:
                await conn.execute("BEGIN")
            except aiosqlite.Error as e:
                raise PersistenceError(f"begin failed: {e}") from e
            try:
                yield _SQLiteScope(conn)
            except BaseException:
                await self._rollback(conn)
                raise
            try:
                await conn.commit()
            except aiosqlite.Error as e:
                await self._rollback(conn)
                raise PersistenceError(f"commit failed: {e}") from e

    async def _rollback(self, conn):
        try:
            await conn.rollback()
        except aiosqlite.Error as e:
            logger.error(f"Rollback failed: {e}")

    async def create_schema(self, cfg: Config):
        async with self._connection() as conn:
            try:
                for statement in schema_statements(cfg.TABLE_PREFIX):
                    await conn.execute(statement)
                await conn.commit()
            except aiosqlite.Error as e:
                raise PersistenceError(f"schema bootstrap failed: {e}") from e
        logger.info(f"✓ Tables ready → {self.path}")


# ─────────────────────────────────────────────
# MySQL (WordPress)
# ─────────────────────────────────────────────
MYSQL_DUP_ENTRY = 1062   # ER_DUP_ENTRY


def _to_format(sql: str) -> str:
    return sql.replace("?", "%s")


class _MySQLScope(Scope):
    def __init__(self, conn):
        self._conn = conn

    async def fetch_all(self, sql, params=()):
        try:
            async with self._conn.cursor(aiomysql.DictCursor) as cur:
                await cur.execute(_to_format(sql), tuple(params) or None)
                rows = await cur.fetchall()
        except aiomysql.Error as e:
            raise PersistenceError(f"query failed: {e}") from e
        return list(rows)

    async def fetch_one(self, sql, params=()):
        try:
            async with self._conn.cursor(aiomysql.DictCursor) as cur:
                await cur.execute(_to_format(sql), tuple(params) or None)
                row = await cur.fetchone()
        except aiomysql.Error as e:
            raise PersistenceError(f"query failed: {e}") from e
        return row

    async def execute(self, sql, params=()):
        try:
            async with self._conn.cursor() as cur:
                await cur.execute(_to_format(sql), tuple(params) or None)
                return cur.lastrowid or 0
        except aiomysql.IntegrityError as e:
            if e.args and e.args[0] == MYSQL_DUP_ENTRY:
                raise DuplicateKeyError(f"duplicate key: {e}") from e
            raise PersistenceError(f"write failed: {e}") from e
        except aiomysql.Error as e:
            raise PersistenceError(f"write failed: {e}") from e


class MySQLDatabase(Database):
    backend = "mysql"

    def __init__(self, cfg: Config):
        super().__init__(cfg.DB_POOL_SIZE)
        self.cfg = cfg
        self._pool = None

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if not self.cfg.DB_SSL:
            return None
        ctx = ssl.create_default_context()
        if not self.cfg.DB_SSL_REJECT_UNAUTHORIZED:
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
        return ctx

    async def connect(self):
        try:
            pool = await aiomysql.create_pool(
                host         = self.cfg.DB_HOST,
                port         = self.cfg.DB_PORT,
                user         = self.cfg.DB_USER,
                password     = self.cfg.DB_PASSWORD,
                db           = self.cfg.DB_NAME,
                minsize      = 1,
                maxsize      = self.pool_size,
                charset      = "utf8mb4",
                init_command = "SET NAMES utf8mb4 COLLATE utf8mb4_unicode_ci",
                autocommit   = True,
                ssl          = self._ssl_context(),
            )
            async with pool.acquire() as conn:
                await conn.ping()
        except (aiomysql.Error, OSError) as e:
            raise PersistenceError(f"cannot connect to {self.cfg.DB_HOST}: {e}") from e
        self._pool = pool
        self._connected = True

    async def close(self):
        self._connected = False
        if self._pool is not None:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None

    @asynccontextmanager
    async def _connection(self):
        if not self._connected:
            raise PersistenceError("database not connected")
        try:
            conn = await self._pool.acquire()
        except (aiomysql.Error, OSError) as e:
            raise PersistenceError(f"cannot acquire connection: {e}") from e
        try:
            yield conn
        finally:
            self._pool.release(conn)

    @asynccontextmanager
    async def session(self):
        async with self._connection() as conn:
            yield _MySQLScope(conn)

    @asynccontextmanager
    async def transaction(self):
        async with self._connection() as conn:
            try:
                await conn.begin()
            except aiomysql.Error as e:
                raise PersistenceError(f"begin failed: {e}") from e
            try:
                yield _MySQLScope(conn)
            except BaseException:
                await self._rollback(conn)
                raise
            try:
                await conn.commit()
            except aiomysql.Error as e:
                await self._rollback(conn)
                raise PersistenceError(f"commit failed: {e}") from e

    async def _rollback(self, conn):
        try:
            await conn.rollback()
        except aiomysql.Error as e:
            logger.error(f"Rollback failed: {e}")


# ─────────────────────────────────────────────
# Factory + startup
# ─────────────────────────────────────────────
def create_database(cfg: Config) -> Database:
    if cfg.use_mysql:
        return MySQLDatabase(cfg)
    return SQLiteDatabase(cfg.DB_PATH, pool_size=cfg.DB_POOL_SIZE)


async def connect_with_retry(
    db: Database,
    delay: float,
    max_attempts: Optional[int] = None,
    on_connect: Optional[Callable[[], Awaitable[None]]] = None,
) -> bool:
    """
    Keep trying db.connect() on a fixed delay.
    max_attempts=None retries forever. Returns True once connected.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            await db.connect()
        except PersistenceError as e:
            logger.error(f"Database connection failed (attempt {attempt}): {e}")
            if max_attempts is not None and attempt >= max_attempts:
                return False
            await asyncio.sleep(delay)
            continue

        logger.info(f"✅ Database connection established ({db.backend})")
        if on_connect is not None:
            await on_connect()
        return True


# ─────────────────────────────────────────────
# Route dependency
# ─────────────────────────────────────────────
def get_db(request: Request) -> Database:
    return request.app.state.db
