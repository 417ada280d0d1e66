"""
Paytrack — models/withdrawal.py
─────────────────────────────────────────────────────────────────
Withdrawal requests. Rows are created "pending" and only ever
status-transitioned by settlement, never deleted.
─────────────────────────────────────────────────────────────────
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class WithdrawalStatus(str, Enum):
    PENDING    = "pending"
    PROCESSING = "processing"
    COMPLETED  = "completed"
    FAILED     = "failed"


WITHDRAWALS_TABLE = """
    CREATE TABLE IF NOT EXISTS {prefix}device_withdrawals (
        id                 INTEGER PRIMARY KEY AUTOINCREMENT,
        account_no         INTEGER NOT NULL,
        transaction_code   TEXT NOT NULL,
        amount             REAL NOT NULL,
        withdrawal_account TEXT NOT NULL,
        account_name       TEXT NOT NULL,
        payment_method     TEXT NOT NULL,
        status             TEXT NOT NULL DEFAULT 'pending',
        withdrawal_date    TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        processed_date     TEXT
    )
"""

# Unique code → a clock/random collision fails the insert instead of
# producing two withdrawals with the same reference.
WITHDRAWALS_CODE_INDEX = """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_{prefix}withdrawals_code
        ON {prefix}device_withdrawals(transaction_code)
"""

WITHDRAWALS_ACCOUNT_INDEX = """
    CREATE INDEX IF NOT EXISTS idx_{prefix}withdrawals_account
        ON {prefix}device_withdrawals(account_no, withdrawal_date DESC)
"""


@dataclass
class Withdrawal:
    id:                 int
    account_no:         int
    transaction_code:   str
    amount:             float
    withdrawal_account: str
    account_name:       str
    payment_method:     str
    status:             str
    withdrawal_date:    str
    processed_date:     Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "Withdrawal":
        return cls(
            id                 = int(row["id"]),
            account_no         = int(row["account_no"]),
            transaction_code   = row["transaction_code"],
            amount             = float(row["amount"]),
            withdrawal_account = row["withdrawal_account"],
            account_name       = row["account_name"],
            payment_method     = row["payment_method"],
            status             = row["status"],
            withdrawal_date    = str(row["withdrawal_date"]),
            processed_date     = row.get("processed_date"),
        )
