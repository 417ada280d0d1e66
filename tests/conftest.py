"""Shared test fixtures for the Paytrack API tests."""

import sqlite3

import pytest
from fastapi.testclient import TestClient
from passlib.hash import phpass

from paytrack.core.config import Config
from paytrack.core.database import SQLiteDatabase
from paytrack.core.passwords import hash_wordpress_password
from paytrack.main import create_app

TEST_SECRET = "test-secret-0123456789-abcdefghijklmnop"

# Account 1 logs in with a WordPress 6.8 bcrypt hash, account 2 with an
# older phpass hash.
USERS = [
    (1, "ACC001", "password123", "john@example.com", "John Doe"),
    (2, "ACC002", "test123", "jane@example.com", "Jane Smith"),
]

DEVICES = [
    (1, 1, "John Doe",   "PT001", "Nairobi CBD"),
    (2, 1, "John Doe",   "PT002", "Westlands"),
    (3, 2, "Jane Smith", "PT003", "Kiambu"),
]

TRANSACTIONS = [
    (1, 1, 1, "TXN202506120001", 50.0,  "Michael Kamau", "+254712345678", "played",     "2025-06-12 10:30:00"),
    (2, 1, 1, "TXN202506120002", 100.0, "Grace Wanjiku", "+254723456789", "played",     "2025-06-12 09:15:00"),
    (3, 1, 2, "TXN202506120003", 75.0,  "David Muthomi", "+254734567890", "not_played", "2025-06-12 08:45:00"),
    (4, 2, 3, "TXN202506120004", 150.0, "Sarah Njeri",   "+254745678901", "played",     "2025-06-12 11:15:00"),
]


def seed(db_path: str, prefix: str = "wp_"):
    conn = sqlite3.connect(db_path)
    try:
        for uid, login, password, email, name in USERS:
            hashed = hash_wordpress_password(password) if uid == 1 else phpass.using(rounds=8).hash(password)
            conn.execute(
                f"INSERT INTO {prefix}users (ID, user_login, user_pass, user_email, display_name) "
                f"VALUES (?,?,?,?,?)",
                (uid, login, hashed, email, name),
            )
        conn.executemany(
            f"INSERT INTO {prefix}devices (device_id, account_no, device_name, serial_number, location) "
            f"VALUES (?,?,?,?,?)",
            DEVICES,
        )
        conn.executemany(
            f"INSERT INTO {prefix}device_transactions (id, account_no, device_id, transaction_id, amount, "
            f"payer_name, phone_number, game_status, transaction_date) VALUES (?,?,?,?,?,?,?,?,?)",
            TRANSACTIONS,
        )
        conn.execute(
            f"INSERT INTO {prefix}device_withdrawals (account_no, transaction_code, amount, withdrawal_account, "
            f"account_name, payment_method, status, withdrawal_date, processed_date) "
            f"VALUES (1, 'WD202506110001', 5000, '+254701234567', 'John Doe', 'M-Pesa', 'completed', "
            f"'2025-06-11 14:30:00', '2025-06-11 14:35:00')"
        )
        conn.commit()
    finally:
        conn.close()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "paytrack-test.db")


@pytest.fixture
def config(db_path):
    return Config(
        ENV="test",
        JWT_SECRET=TEST_SECRET,
        DB_HOST="",
        DB_PATH=db_path,
        DB_POOL_SIZE=4,
        DB_RETRY_DELAY=60,
        DB_AUTO_CREATE=True,
        TABLE_PREFIX="wp_",
        RATE_LIMIT_MAX=100,
        RATE_LIMIT_WINDOW_SECONDS=900,
        TRUST_PROXY=False,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def sqlite_db(config):
    """Unconnected database; async tests call `await ready(db, config)`."""
    return SQLiteDatabase(config.DB_PATH, pool_size=config.DB_POOL_SIZE)


async def ready(db, cfg):
    await db.connect()
    await db.create_schema(cfg)
    return db


@pytest.fixture
def app(config):
    return create_app(config)


@pytest.fixture
def client(app, config):
    with TestClient(app) as c:
        seed(config.DB_PATH, config.TABLE_PREFIX)
        yield c


def login(client, username="ACC001", password="password123") -> str:
    resp = client.post("/api/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


@pytest.fixture
def auth_headers(client):
    return {"Authorization": f"Bearer {login(client)}"}


@pytest.fixture
def other_auth_headers(client):
    return {"Authorization": f"Bearer {login(client, 'ACC002', 'test123')}"}
