"""
Paytrack — models/support.py
─────────────────────────────────────────────────────────────────
Support tickets.
─────────────────────────────────────────────────────────────────
"""

from enum import Enum


class TicketStatus(str, Enum):
    OPEN        = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED    = "resolved"
    CLOSED      = "closed"


class TicketPriority(str, Enum):
    LOW    = "low"
    MEDIUM = "medium"
    HIGH   = "high"
    URGENT = "urgent"


SUPPORT_TICKETS_TABLE = """
    CREATE TABLE IF NOT EXISTS {prefix}support_tickets (
        id            INTEGER PRIMARY KEY AUTOINCREMENT,
        ticket_number TEXT NOT NULL UNIQUE,
        account_no    INTEGER NOT NULL,
        name          TEXT,
        email         TEXT,
        phone         TEXT,
        category      TEXT,
        subject       TEXT NOT NULL,
        message       TEXT NOT NULL,
        priority      TEXT NOT NULL DEFAULT 'medium',
        status        TEXT NOT NULL DEFAULT 'open',
        created_date  TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
"""

SUPPORT_TICKETS_ACCOUNT_INDEX = """
    CREATE INDEX IF NOT EXISTS idx_{prefix}support_account
        ON {prefix}support_tickets(account_no, created_date DESC)
"""
