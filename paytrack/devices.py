"""
Paytrack — devices.py
Devices owned by the caller's account and their balances.
"""

from fastapi import APIRouter, Depends

from paytrack.core.config import Config, get_config
from paytrack.core.database import Database, get_db
from paytrack.core.errors import NotFoundError
from paytrack.core.security import Identity, get_current_user

router = APIRouter(prefix="/api/devices", tags=["Devices"])


@router.get("")
async def list_devices(
    user: Identity = Depends(get_current_user),
    db:   Database = Depends(get_db),
    cfg:  Config   = Depends(get_config),
):
    """Every device on the account, with balance = sum of its transactions."""
    return await db.fetch_all(
        f"""SELECT d.*,
                   COALESCE((SELECT SUM(t.amount)
                             FROM {cfg.table('device_transactions')} t
                             WHERE t.device_id = d.device_id), 0) AS balance
            FROM {cfg.table('devices')} d
            WHERE d.account_no = ?
            ORDER BY d.device_id""",
        (user.account_no,)
    )


@router.get("/{device_id}/balance")
async def device_balance(
    device_id: int,
    user:      Identity = Depends(get_current_user),
    db:        Database = Depends(get_db),
    cfg:       Config   = Depends(get_config),
):
    # Another account's device looks exactly like a missing one
    device = await db.fetch_one(
        f"SELECT device_id FROM {cfg.table('devices')} WHERE device_id = ? AND account_no = ?",
        (device_id, user.account_no)
    )
    if not device:
        raise NotFoundError("Device not found")

    row = await db.fetch_one(
        f"SELECT COALESCE(SUM(amount), 0) AS balance "
        f"FROM {cfg.table('device_transactions')} WHERE device_id = ?",
        (device_id,)
    )
    return {"balance": row["balance"] if row else 0}
