"""Settlement domain API package."""

from settlement.api.errors import register_exception_handlers
from settlement.api.routes import admin_router, coupon_router, order_router, payment_router

__all__ = ["admin_router", "coupon_router", "order_router", "payment_router", "register_exception_handlers"]
