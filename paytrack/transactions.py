"""
Paytrack — transactions.py
Paginated device transaction history for the caller's account.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from paytrack.core.config import Config, get_config
from paytrack.core.database import Database, get_db
from paytrack.core.pagination import Page, get_page
from paytrack.core.security import Identity, get_current_user

router = APIRouter(prefix="/api/transactions", tags=["Transactions"])


@router.get("")
async def list_transactions(
    start_date: Optional[str] = Query(None),
    end_date:   Optional[str] = Query(None),
    page:       Page     = Depends(get_page),
    user:       Identity = Depends(get_current_user),
    db:         Database = Depends(get_db),
    cfg:        Config   = Depends(get_config),
):
    """
    Newest first. The date range applies only when both ends are given;
    `total` counts rows under the same filter.
    """
    where = "t.account_no = ?"
    params = [user.account_no]
    if start_date and end_date:
        where += " AND t.transaction_date BETWEEN ? AND ?"
        params += [start_date, end_date]

    txns = cfg.table("device_transactions")
    rows = await db.fetch_all(
        f"""SELECT t.*, d.device_name
            FROM {txns} t
            LEFT JOIN {cfg.table('devices')} d ON t.device_id = d.device_id
            WHERE {where}
            ORDER BY t.transaction_date DESC, t.id DESC
            LIMIT ? OFFSET ?""",
        (*params, page.limit, page.offset)
    )
    total = await db.fetch_one(
        f"SELECT COUNT(*) AS count FROM {txns} t WHERE {where}",
        params
    )
    return {"transactions": rows, "pagination": page.describe(total["count"])}
