"""
Table definitions, in creation order (users first, others point at it).
"""

from typing import List

from paytrack.models.user import USERS_TABLE
from paytrack.models.device import (
    DEVICES_TABLE, DEVICES_ACCOUNT_INDEX,
    DEVICE_TRANSACTIONS_TABLE, DEVICE_TRANSACTIONS_ACCOUNT_INDEX,
)
from paytrack.models.withdrawal import (
    WITHDRAWALS_TABLE, WITHDRAWALS_CODE_INDEX, WITHDRAWALS_ACCOUNT_INDEX,
)
from paytrack.models.support import SUPPORT_TICKETS_TABLE, SUPPORT_TICKETS_ACCOUNT_INDEX

SCHEMA = [
    USERS_TABLE,
    DEVICES_TABLE,
    DEVICES_ACCOUNT_INDEX,
    DEVICE_TRANSACTIONS_TABLE,
    DEVICE_TRANSACTIONS_ACCOUNT_INDEX,
    WITHDRAWALS_TABLE,
    WITHDRAWALS_CODE_INDEX,
    WITHDRAWALS_ACCOUNT_INDEX,
    SUPPORT_TICKETS_TABLE,
    SUPPORT_TICKETS_ACCOUNT_INDEX,
]


def schema_statements(prefix: str) -> List[str]:
    return [sql.format(prefix=prefix) for sql in SCHEMA]
