"""Settlement FastAPI application.

Processes checkout, payment and coupon commands synchronously via HTTP.
Every request runs inside the settlement domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - default      → memory database, sync event processing
#   - "production" → event_processing = "async"
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import settlement.catalog  # noqa: F401  (load package before init() traverses its submodules)
from settlement.domain import settlement
from settlement.utils.logging import clear_checkout_context, configure_logging

configure_logging()
settlement.init()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Order Settlement API",
    description="Checkout pricing, order lifecycle and payment reconciliation",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the settlement domain context and reset per-request log context."""
    clear_checkout_context()
    with settlement.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from settlement.api import (  # noqa: E402
    admin_router,
    coupon_router,
    order_router,
    payment_router,
    register_exception_handlers,
)

app.include_router(order_router)
app.include_router(admin_router)
app.include_router(payment_router)
app.include_router(coupon_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": settlement.name})
