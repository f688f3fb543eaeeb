"""Error taxonomy for checkout and payment settlement.

Validation-style failures subclass Protean's ``ValidationError`` so that they
surface as 400s through ``register_exception_handlers`` and carry a
``messages`` dict like every other domain validation failure. State machine
violations subclass ``InvalidOperationError``.
"""

from enum import Enum

from protean.exceptions import InvalidOperationError, ValidationError


class SettlementError(Exception):
    """Base class for settlement failures that are not input validation."""


# ---------------------------------------------------------------------------
# Rejected before anything is persisted
# ---------------------------------------------------------------------------
class InvalidAddress(ValidationError):
    def __init__(self, messages):
        super().__init__(messages)


class EmptyOrder(ValidationError):
    def __init__(self):
        super().__init__({"items": ["Order must contain at least one item"]})


class UnknownProduct(ValidationError):
    def __init__(self, product_id, variant_id=None):
        self.product_id = product_id
        self.variant_id = variant_id
        if variant_id:
            message = f"Unknown variant {variant_id} for product {product_id}"
        else:
            message = f"Unknown product {product_id}"
        super().__init__({"items": [message]})


class RejectionReason(Enum):
    NOT_FOUND = "not_found"
    NOT_YET_ACTIVE = "not_yet_active"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    PER_USER_LIMIT_REACHED = "per_user_limit_reached"
    MINIMUM_NOT_MET = "minimum_not_met"
    NOT_APPLICABLE = "not_applicable"


_REJECTION_MESSAGES = {
    RejectionReason.NOT_FOUND: "Invalid coupon code",
    RejectionReason.NOT_YET_ACTIVE: "Coupon is not yet valid",
    RejectionReason.EXPIRED: "Coupon has expired",
    RejectionReason.USAGE_LIMIT_REACHED: "Coupon usage limit reached",
    RejectionReason.PER_USER_LIMIT_REACHED: "You have already used this coupon the maximum number of times",
    RejectionReason.MINIMUM_NOT_MET: "Order does not meet the coupon's minimum amount",
    RejectionReason.NOT_APPLICABLE: "This coupon does not apply to any items in your order",
}


class CouponRejected(ValidationError):
    def __init__(self, code, reason: RejectionReason):
        self.code = code
        self.reason = reason
        super().__init__({"coupon_code": [_REJECTION_MESSAGES[reason]], "reason": [reason.value]})


# ---------------------------------------------------------------------------
# Persistence, gateway and state machine failures
# ---------------------------------------------------------------------------
class PersistenceFailure(SettlementError):
    """The order unit of work could not be committed; nothing was written."""


class PaymentGatewayError(SettlementError):
    """The gateway could not create a payment intent for a persisted order."""

    def __init__(self, message, order_id=None):
        super().__init__(message)
        self.order_id = order_id


class PaymentVerificationFailed(SettlementError):
    """A payment callback carried a signature that does not match."""


class NotOrderOwner(SettlementError):
    """The requester does not own the order they are acting on."""


class InvalidTransition(InvalidOperationError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition order from {current} to {target}")
