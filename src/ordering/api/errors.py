"""HTTP rendering of ordering failures.

Protean's own handlers cover ``ValidationError`` and friends; ordering errors
are rendered in the same ``{"error": {field: [messages]}}`` shape.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering.errors import (
    BusinessRuleViolation,
    ConcurrencyConflictError,
    OrderAccessDeniedError,
    OrderingError,
    OrderNotFoundError,
)

logger = structlog.get_logger(__name__)

RETRY_AFTER_SECONDS = 1

# Most specific first
_STATUS_CODES = (
    (OrderNotFoundError, 404),
    (OrderAccessDeniedError, 403),
    (BusinessRuleViolation, 409),
    (ConcurrencyConflictError, 503),
)


def status_code_for(exc: OrderingError) -> int:
    for error_class, status_code in _STATUS_CODES:
        if isinstance(exc, error_class):
            return status_code
    return 500


async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    status_code = status_code_for(exc)
    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if exc.retryable else None
    if status_code >= 500:
        logger.error("Order request failed", path=request.url.path, error=exc.message, retryable=exc.retryable)
    return JSONResponse(status_code=status_code, content={"error": exc.messages}, headers=headers)


def register_ordering_exception_handlers(app: FastAPI) -> None:
    """Install Protean's exception handlers plus the ordering error handler."""
    register_exception_handlers(app)
    app.add_exception_handler(OrderingError, ordering_error_handler)
