"""
Translate payments-layer exceptions into HTTP responses.
"""

import structlog
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.dependencies import loaded_settings
from payments.errors import AuthError, OrderValidationError, PayPalError

log = structlog.get_logger(__name__)


def status_for(exc: PayPalError) -> int:
    """HTTP status a PayPal failure is reported with."""
    if isinstance(exc, OrderValidationError):
        return 400
    if exc.transport is not None:
        return 504 if exc.transport.timeout else 502
    if isinstance(exc, AuthError):
        return 403 if exc.status_code == 403 else 401
    if exc.status_code is None:
        # raised locally before anything was sent
        return 400
    if exc.status_code == 404:
        return 404
    if 400 <= exc.status_code < 500:
        return 422
    return 502


def error_body(exc: PayPalError, include_details: bool) -> dict:
    body = {"error": type(exc).__name__, "detail": exc.message}
    if exc.order_id:
        body["order_id"] = exc.order_id
    if include_details:
        body["provider_error"] = exc.provider_error
        body["debug_id"] = exc.debug_id
        body["details"] = exc.details
    return body


def _include_details() -> bool:
    settings = loaded_settings()
    return settings is not None and not settings.is_production


async def paypal_error_handler(request: Request, exc: PayPalError):
    status_code = status_for(exc)
    log.warning(
        "api.paypal_error",
        path=request.url.path,
        error=type(exc).__name__,
        status_code=status_code,
        provider_status=exc.status_code,
        debug_id=exc.debug_id,
    )
    return JSONResponse(
        status_code=status_code, content=error_body(exc, _include_details())
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "ValidationError", "detail": jsonable_encoder(exc.errors())},
    )
