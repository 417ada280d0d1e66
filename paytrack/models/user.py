"""
Paytrack — models/user.py
─────────────────────────────────────────────────────────────────
WordPress users table (subset we read) + dataclass.
No logic here, only structure.
─────────────────────────────────────────────────────────────────
"""

from dataclasses import dataclass
from typing import Optional


# ─────────────────────────────────────────────
# SQL
# ─────────────────────────────────────────────
# Owned by WordPress in production. Created only for local SQLite.
USERS_TABLE = """
    CREATE TABLE IF NOT EXISTS {prefix}users (
        ID              INTEGER PRIMARY KEY AUTOINCREMENT,
        user_login      TEXT NOT NULL UNIQUE,
        user_pass       TEXT NOT NULL,
        user_email      TEXT NOT NULL DEFAULT '',
        display_name    TEXT NOT NULL DEFAULT '',
        user_registered TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
"""


# ─────────────────────────────────────────────
# Dataclasses
# ─────────────────────────────────────────────
@dataclass
class User:
    id:           int
    username:     str
    email:        str
    display_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "User":
        return cls(
            id           = int(row["ID"]),
            username     = row["user_login"],
            email        = row.get("user_email") or "",
            display_name = row.get("display_name"),
        )

    def public(self) -> dict:
        return {"id": self.id, "username": self.username, "email": self.email}
