"""
Reference codes shown to users: W12345678, TKT12345678.

Four low-order digits of the millisecond clock + four digits from
`secrets`. The clock part wraps every 10 seconds, so codes do repeat
over time; the tables' unique indexes catch that and `with_fresh_code`
draws again.
"""

import logging
import secrets
import time
from typing import Awaitable, Callable, Tuple, TypeVar

from paytrack.core.errors import DuplicateKeyError

logger = logging.getLogger("paytrack.codes")

WITHDRAWAL_PREFIX = "W"
TICKET_PREFIX     = "TKT"
CODE_ATTEMPTS     = 3

T = TypeVar("T")


def make_reference_code(prefix: str, now_ms: int = None) -> str:
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{prefix}{now_ms % 10_000:04d}{secrets.randbelow(10_000):04d}"


async def with_fresh_code(
    prefix: str,
    write: Callable[[str], Awaitable[T]],
    attempts: int = CODE_ATTEMPTS,
) -> Tuple[str, T]:
    """
    Run `write(code)` with a new code until one is not taken.

    `write` must be a whole unit of work: a DuplicateKeyError has to
    leave nothing behind. After `attempts` collisions the last
    DuplicateKeyError propagates.
    """
    for attempt in range(1, attempts + 1):
        code = make_reference_code(prefix)
        try:
            return code, await write(code)
        except DuplicateKeyError:
            if attempt == attempts:
                raise
            logger.warning(f"Reference code {code} already taken, drawing again ({attempt}/{attempts})")
