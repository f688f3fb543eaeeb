"""Settlement bounded context — checkout pricing, orders and payment reconciliation.

Turns a cart into a durable, price-correct order: resolves addresses, prices
line items against the catalog, applies coupons, persists the order and its
items atomically, and reconciles asynchronous gateway payments.
"""

import structlog
from protean.domain import Domain

settlement = Domain(name="settlement")

logger = structlog.get_logger(__name__)
