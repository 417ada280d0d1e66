"""
Paytrack — support.py
─────────────────────────────────────────────────────────────────
Support tickets.

Routes:
    POST /api/support   → {message, ticket_number, ticket_id}
    GET  /api/support?page=&limit=&status=
─────────────────────────────────────────────────────────────────
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field

from paytrack.core.codes import TICKET_PREFIX, with_fresh_code
from paytrack.core.config import Config, get_config
from paytrack.core.database import Database, get_db
from paytrack.core.pagination import Page, get_page
from paytrack.core.security import Identity, get_current_user
from paytrack.models.support import TicketPriority, TicketStatus

logger = logging.getLogger("paytrack.support")
router = APIRouter(prefix="/api/support", tags=["Support"])


class SupportTicketRequest(BaseModel):
    name:     Optional[str] = Field(None, max_length=128)
    email:    Optional[EmailStr] = None
    phone:    Optional[str] = Field(None, max_length=32)
    category: Optional[str] = Field(None, max_length=64)
    subject:  str = Field(..., min_length=1, max_length=255)
    message:  str = Field(..., min_length=1)
    priority: TicketPriority = TicketPriority.MEDIUM


@router.post("")
async def create_ticket(
    body: SupportTicketRequest,
    user: Identity = Depends(get_current_user),
    db:   Database = Depends(get_db),
    cfg:  Config   = Depends(get_config),
):
    async def write(ticket_number: str) -> int:
        return await db.execute(
            f"""INSERT INTO {cfg.table('support_tickets')}
                (ticket_number, account_no, name, email, phone, category,
                 subject, message, priority, status, created_date)
                VALUES (?,?,?,?,?,?,?,?,?,?,?)""",
            (ticket_number, user.account_no,
             body.name or user.username, body.email or user.email,
             body.phone, body.category, body.subject, body.message,
             body.priority.value, TicketStatus.OPEN.value,
             datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"))
        )

    ticket_number, ticket_id = await with_fresh_code(TICKET_PREFIX, write)
    logger.info(f"🎫 Ticket {ticket_number} opened by account {user.account_no}")
    return {
        "message":       "Support ticket submitted successfully",
        "ticket_number": ticket_number,
        "ticket_id":     ticket_id,
    }


@router.get("")
async def list_tickets(
    status: Optional[TicketStatus] = Query(None),
    page:   Page     = Depends(get_page),
    user:   Identity = Depends(get_current_user),
    db:     Database = Depends(get_db),
    cfg:    Config   = Depends(get_config),
):
    table = cfg.table("support_tickets")
    where = "account_no = ?"
    params = [user.account_no]
    if status is not None:
        where += " AND status = ?"
        params.append(status.value)

    rows = await db.fetch_all(
        f"""SELECT * FROM {table}
            WHERE {where}
            ORDER BY created_date DESC, id DESC
            LIMIT ? OFFSET ?""",
        (*params, page.limit, page.offset)
    )
    total = await db.fetch_one(f"SELECT COUNT(*) AS count FROM {table} WHERE {where}", params)
    return {"tickets": rows, "pagination": page.describe(total["count"])}
