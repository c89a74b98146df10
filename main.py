"""
PayPal Checkout Service - Main Application Entry Point

This module initializes the FastAPI application and sets up the core routing.
It exposes a thin HTTP surface over the PayPal order lifecycle: order creation,
capture, refunds and lookups.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from api import routes
from api.errors import paypal_error_handler, request_validation_handler
from api.middleware import log_api_entry
from core.dependencies import (
    clear_settings,
    get_settings,
    init_settings,
    loaded_settings,
)
from core.logging import configure_logging
from core.metrics import add_metrics_auth_middleware, init_metrics
from core.settings import Settings
from core.tracing import init_tracer
from payments.errors import PayPalError

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI application startup and shutdown events."""
    # Startup
    init_settings()
    settings = get_settings()

    init_tracer(settings.OTEL_SERVICE_NAME)
    log.info(
        "app.startup",
        app_name=settings.APP_NAME,
        environment=settings.ENVIRONMENT,
        paypal_environment=settings.PAYPAL_ENVIRONMENT,
    )

    yield
    # Shutdown
    clear_settings()


app = FastAPI(
    title="PayPal Checkout Service",
    description="""
    ## PayPal Orders v2 checkout API

    Creates PayPal orders, captures them and refunds captures on behalf of a
    front end that never sees the merchant credentials.

    ### Flows:
    - **Hosted checkout**: create an order, redirect the buyer to `approval_url`,
      capture when they return
    - **Direct card**: send card data with the order; it is captured immediately
    - **Vaulted token**: charge a stored PayPal payment token
    - **Hosted card fields**: fetch a client token, create an order, patch its
      payment source and capture
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Initialize FastAPI instrumentation
FastAPIInstrumentor.instrument_app(app)

# Initialize Prometheus metrics
init_metrics(app)

# Add metrics authentication middleware (for production)
add_metrics_auth_middleware(app)

# Add logging middleware
app.middleware("http")(log_api_entry)

app.add_exception_handler(PayPalError, paypal_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log.error("api.unhandled_error", path=request.url.path, error=str(exc))
    settings = loaded_settings()
    detail = (
        str(exc)
        if settings is not None and not settings.is_production
        else "Internal server error"
    )
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
    )


@app.get("/")
async def root():
    """Root endpoint providing API information."""
    return {
        "name": "PayPal Checkout Service",
        "version": "1.0.0",
        "api_documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_spec": "/openapi.json",
        },
        "endpoints": {
            "orders": "/api/v1/paypal/orders - Create and capture orders",
            "authorizations": "/api/v1/paypal/authorizations/{id}/capture - Capture authorizations",
            "captures": "/api/v1/paypal/captures/{id} - Lookups and refunds",
            "client_token": "/api/v1/paypal/client-token - Hosted card fields token",
            "health": "/health - Health check endpoint",
            "metrics": "/metrics - Prometheus metrics (requires auth)",
        },
    }


@app.get("/health")
async def health(settings: Settings = Depends(get_settings)):
    """Health check endpoint alias."""
    return await health_check(settings)


@app.get("/healthz")
async def health_check(settings: Settings = Depends(get_settings)):
    """Health check endpoint to verify API status."""
    return {
        "status": "ok",
        "app_name": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "paypal_env": settings.PAYPAL_ENVIRONMENT,
    }


# Include routers under a single versioned prefix
API_PREFIX = "/api/v1"

app.include_router(routes.router, prefix=API_PREFIX)


def main():
    configure_logging()
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
