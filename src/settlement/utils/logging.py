"""Logging configuration for the settlement domain.

Log lines carry the checkout identifiers bound for the current request
(order_id, order_number, gateway_order_id) and never carry payment
secrets: signatures and gateway credentials are masked before rendering.
"""

import logging
import os
import sys
from typing import Any

import structlog

# Suppress noisy library loggers
logging.getLogger("protean").setLevel(logging.WARNING)

REDACTED = "[redacted]"

SECRET_KEYS = frozenset(
    {
        "signature",
        "razorpay_signature",
        "x-razorpay-signature",
        "key_secret",
        "webhook_secret",
        "authorization",
    }
)


def redact_secrets(logger, method_name, event_dict):
    """Mask payment secrets, including those nested in dict values such as webhook payloads."""
    for key, value in event_dict.items():
        if isinstance(key, str) and key.lower() in SECRET_KEYS and value is not None:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = redact_secrets(logger, method_name, dict(value))
    return event_dict


def get_log_level() -> str:
    env = (os.getenv("PROTEAN_ENV") or "development").lower()
    default = "INFO" if env in ("production", "staging") else "DEBUG"
    return os.getenv("LOG_LEVEL", default).upper()


def configure_logging() -> None:
    """Route structlog through stdlib logging on stdout."""
    level = get_log_level()
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    if (os.getenv("PROTEAN_ENV") or "").lower() == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=2),
        )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_checkout_context(**kwargs: Any) -> None:
    """Bind checkout identifiers to subsequent log lines. None values are skipped."""
    structlog.contextvars.bind_contextvars(**{key: value for key, value in kwargs.items() if value is not None})


def bind_payment_context(order, gateway_order_id=None) -> None:
    bind_checkout_context(
        order_id=str(order.id),
        order_number=order.order_number,
        gateway_order_id=gateway_order_id or order.gateway_order_id,
    )


def clear_checkout_context() -> None:
    structlog.contextvars.clear_contextvars()
