"""Maps settlement failures to HTTP responses.

Protean's own handlers cover ``ValidationError`` (400), ``ObjectNotFoundError``
(404) and ``InvalidOperationError``. The settlement-specific mappings below
take precedence for their subclasses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers as register_protean_handlers

from settlement.errors import (
    InvalidTransition,
    NotOrderOwner,
    PaymentGatewayError,
    PaymentVerificationFailed,
    PersistenceFailure,
)


async def _invalid_transition(request: Request, exc: InvalidTransition) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"error": str(exc), "current_status": exc.current, "requested_status": exc.target},
    )


async def _gateway_error(request: Request, exc: PaymentGatewayError) -> JSONResponse:
    # The order exists and can be retried; tell the client which one
    return JSONResponse(
        status_code=502,
        content={"error": "Payment initialization failed", "detail": str(exc), "order_id": exc.order_id},
    )


async def _verification_failed(request: Request, exc: PaymentVerificationFailed) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Payment verification failed"})


async def _not_owner(request: Request, exc: NotOrderOwner) -> JSONResponse:
    return JSONResponse(status_code=403, content={"error": str(exc)})


async def _persistence_failure(request: Request, exc: PersistenceFailure) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "Order could not be saved", "detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    register_protean_handlers(app)
    app.add_exception_handler(InvalidTransition, _invalid_transition)
    app.add_exception_handler(PaymentGatewayError, _gateway_error)
    app.add_exception_handler(PaymentVerificationFailed, _verification_failed)
    app.add_exception_handler(NotOrderOwner, _not_owner)
    app.add_exception_handler(PersistenceFailure, _persistence_failure)
