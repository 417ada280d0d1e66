"""
Paytrack — models/device.py
─────────────────────────────────────────────────────────────────
Devices + the per-device payment ledger (device transactions).
─────────────────────────────────────────────────────────────────
"""

from enum import Enum


class GameStatus(str, Enum):
    PLAYED     = "played"
    NOT_PLAYED = "not_played"


DEVICES_TABLE = """
    CREATE TABLE IF NOT EXISTS {prefix}devices (
        device_id         INTEGER PRIMARY KEY AUTOINCREMENT,
        account_no        INTEGER NOT NULL,
        device_name       TEXT NOT NULL DEFAULT '',
        serial_number     TEXT,
        location          TEXT,
        status            TEXT NOT NULL DEFAULT 'active',
        registration_date TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        last_activity     TEXT
    )
"""

DEVICES_ACCOUNT_INDEX = """
    CREATE INDEX IF NOT EXISTS idx_{prefix}devices_account
        ON {prefix}devices(account_no)
"""

DEVICE_TRANSACTIONS_TABLE = """
    CREATE TABLE IF NOT EXISTS {prefix}device_transactions (
        id               INTEGER PRIMARY KEY AUTOINCREMENT,
        account_no       INTEGER NOT NULL,
        device_id        INTEGER NOT NULL REFERENCES {prefix}devices(device_id),
        transaction_id   TEXT NOT NULL,
        amount           REAL NOT NULL,
        running_balance  REAL,
        payer_name       TEXT,
        phone_number     TEXT,
        game_status      TEXT NOT NULL DEFAULT 'played',
        transaction_date TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
"""

DEVICE_TRANSACTIONS_ACCOUNT_INDEX = """
    CREATE INDEX IF NOT EXISTS idx_{prefix}device_transactions_account
        ON {prefix}device_transactions(account_no, transaction_date DESC)
"""
