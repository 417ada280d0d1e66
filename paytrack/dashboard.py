"""
Paytrack — dashboard.py
Headline counters for the caller's account.
"""

from fastapi import APIRouter, Depends

from paytrack.core.config import Config, get_config
from paytrack.core.database import Database, get_db
from paytrack.core.security import Identity, get_current_user
from paytrack.models.device import GameStatus
from paytrack.models.withdrawal import WithdrawalStatus

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("/stats")
async def dashboard_stats(
    user: Identity = Depends(get_current_user),
    db:   Database = Depends(get_db),
    cfg:  Config   = Depends(get_config),
):
    played = GameStatus.PLAYED.value
    row = await db.fetch_one(
        f"""SELECT
                COUNT(DISTINCT device_id) AS total_devices,
                COALESCE(SUM(CASE WHEN game_status = ? THEN amount ELSE 0 END), 0) AS total_earnings,
                COUNT(CASE WHEN game_status = ? THEN 1 END) AS total_games,
                (SELECT COUNT(*) FROM {cfg.table('device_withdrawals')}
                 WHERE account_no = ? AND status = ?) AS pending_withdrawals
            FROM {cfg.table('device_transactions')}
            WHERE account_no = ?""",
        (played, played, user.account_no, WithdrawalStatus.PENDING.value, user.account_no)
    )
    row = row or {}
    return {
        "total_devices":       row.get("total_devices") or 0,
        "total_earnings":      row.get("total_earnings") or 0,
        "total_games":         row.get("total_games") or 0,
        "pending_withdrawals": row.get("pending_withdrawals") or 0,
    }
