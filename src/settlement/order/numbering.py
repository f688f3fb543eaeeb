"""Human-readable order numbers: ``ORD-<epoch-millis>-<4 random digits>``.

Two checkouts in the same millisecond can draw the same suffix, so a number
is only handed out after checking that no order already carries it.
"""

import random
import time

import structlog

from settlement.errors import PersistenceFailure

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = 5


def generate_order_number(now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"ORD-{now_ms}-{random.randint(0, 9999):04d}"


def allocate_order_number(repository, generator=generate_order_number) -> str:
    """Return an order number not yet used by any order in ``repository``."""
    for attempt in range(1, MAX_ATTEMPTS + 1):
        candidate = generator()
        if repository.find_by_order_number(candidate) is None:
            return candidate
        logger.warning("Order number collision, regenerating", order_number=candidate, attempt=attempt)

    raise PersistenceFailure(f"Could not allocate a unique order number after {MAX_ATTEMPTS} attempts")
