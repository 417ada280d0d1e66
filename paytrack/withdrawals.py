"""
Paytrack — withdrawals.py
─────────────────────────────────────────────────────────────────
Withdrawal requests: the one multi-step write path.

  1. generate a transaction code (W + 8 digits)
  2. open a transaction on one pooled connection
  3. insert the request as "pending", read it back
  4. commit

Any failure in 2–4 rolls the whole unit back; no partial row is
ever visible. A code that is already taken restarts from 1 (up to
CODE_ATTEMPTS times). The connection goes back to the pool on
every path.

Usage:
    service = WithdrawalService(db, cfg)
    withdrawal = await service.create(account_no=7, amount=5000,
                                      withdrawal_account="+254700000000",
                                      account_name="John Doe")

Routes:
    POST /api/withdrawals
    GET  /api/withdrawals?page=&limit=&status=
─────────────────────────────────────────────────────────────────
"""

import math
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from paytrack.core.codes import WITHDRAWAL_PREFIX, with_fresh_code
from paytrack.core.config import Config, get_config
from paytrack.core.database import Database, get_db
from paytrack.core.errors import PersistenceError, ValidationError
from paytrack.core.pagination import Page, get_page
from paytrack.core.security import Identity, get_current_user
from paytrack.models.withdrawal import Withdrawal, WithdrawalStatus

logger = logging.getLogger("paytrack.withdrawals")
router = APIRouter(prefix="/api/withdrawals", tags=["Withdrawals"])


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


# ─────────────────────────────────────────────
# Service
# ─────────────────────────────────────────────
class WithdrawalService:
    def __init__(self, db: Database, cfg: Config):
        self.db = db
        self.cfg = cfg
        self.table = cfg.table("device_withdrawals")

    async def create(
        self,
        account_no: int,
        amount: float,
        withdrawal_account: str,
        account_name: str,
        payment_method: Optional[str] = None,
    ) -> Withdrawal:
        if amount is None or not math.isfinite(amount) or amount <= 0:
            raise ValidationError("amount must be a positive number")
        if not withdrawal_account:
            raise ValidationError("withdrawal_account is required")
        if not account_name:
            raise ValidationError("account_name is required")
        method = payment_method or self.cfg.DEFAULT_PAYMENT_METHOD

        async def write(code: str) -> dict:
            async with self.db.transaction() as tx:
                new_id = await tx.execute(
                    f"""INSERT INTO {self.table}
                        (account_no, transaction_code, amount, withdrawal_account,
                         account_name, payment_method, status, withdrawal_date)
                        VALUES (?,?,?,?,?,?,?,?)""",
                    (account_no, code, amount, withdrawal_account,
                     account_name, method, WithdrawalStatus.PENDING.value, _now())
                )
                row = await tx.fetch_one(
                    f"SELECT * FROM {self.table} WHERE id = ?", (new_id,)
                )
                if row is None:
                    raise PersistenceError(f"withdrawal {new_id} missing after insert")
                return row

        try:
            _, row = await with_fresh_code(WITHDRAWAL_PREFIX, write)
        except PersistenceError as e:
            logger.error(f"Withdrawal rolled back for account {account_no}: {e}")
            raise

        withdrawal = Withdrawal.from_row(row)
        logger.info(f"💸 Withdrawal {withdrawal.transaction_code} "
                    f"({withdrawal.amount} via {withdrawal.payment_method}) for account {account_no}")
        return withdrawal

    async def list(self, account_no: int, page: Page,
                   status: Optional[WithdrawalStatus] = None) -> dict:
        where = "account_no = ?"
        params = [account_no]
        if status is not None:
            where += " AND status = ?"
            params.append(status.value)

        rows = await self.db.fetch_all(
            f"""SELECT * FROM {self.table}
                WHERE {where}
                ORDER BY withdrawal_date DESC, id DESC
                LIMIT ? OFFSET ?""",
            (*params, page.limit, page.offset)
        )
        total = await self.db.fetch_one(
            f"SELECT COUNT(*) AS count FROM {self.table} WHERE {where}", params
        )
        return {"withdrawals": rows, "pagination": page.describe(total["count"])}


def get_withdrawal_service(
    db:  Database = Depends(get_db),
    cfg: Config   = Depends(get_config),
) -> WithdrawalService:
    return WithdrawalService(db, cfg)


# ─────────────────────────────────────────────
# Schemas
# ─────────────────────────────────────────────
class WithdrawalRequest(BaseModel):
    amount:             float = Field(..., gt=0, allow_inf_nan=False)
    withdrawal_account: str = Field(..., min_length=1, max_length=64)
    account_name:       Optional[str] = Field(None, max_length=128)
    payment_method:     Optional[str] = Field(None, max_length=32)


# ─────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────
@router.post("")
async def create_withdrawal(
    body:    WithdrawalRequest,
    user:    Identity          = Depends(get_current_user),
    service: WithdrawalService = Depends(get_withdrawal_service),
):
    withdrawal = await service.create(
        account_no         = user.account_no,
        amount             = body.amount,
        withdrawal_account = body.withdrawal_account.strip(),
        account_name       = (body.account_name or "").strip() or user.username,
        payment_method     = (body.payment_method or "").strip() or None,
    )
    return {
        "message":          "Withdrawal request submitted successfully",
        "transaction_code": withdrawal.transaction_code,
        "withdrawal_id":    withdrawal.id,
    }


@router.get("")
async def list_withdrawals(
    status:  Optional[WithdrawalStatus] = Query(None),
    page:    Page              = Depends(get_page),
    user:    Identity          = Depends(get_current_user),
    service: WithdrawalService = Depends(get_withdrawal_service),
):
    return await service.list(user.account_no, page, status)
