"""
Prometheus metrics instrumentation for the PayPal checkout service.

This module sets up FastAPI instrumentation to expose metrics in Prometheus format
at the /metrics endpoint with optional authentication, and defines the counters the
payments layer updates on every PayPal call.
"""

import os

from fastapi import Request, status
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

# Domain-specific metrics
paypal_orders_created = Counter(
    "paypal_orders_created_total",
    "Total number of PayPal orders created",
    ["flow"],  # paypal, card, vaulted-token
)

paypal_captures = Counter(
    "paypal_captures_total",
    "Total number of PayPal captures by resulting status",
    ["status"],
)

paypal_refunds = Counter(
    "paypal_refunds_total",
    "Total number of PayPal refunds",
    ["kind"],  # full or partial
)

paypal_token_refreshes = Counter(
    "paypal_token_refreshes_total",
    "Number of OAuth token exchanges performed against PayPal",
)

paypal_api_errors = Counter(
    "paypal_api_errors_total",
    "PayPal calls that failed",
    ["operation", "kind"],  # kind: http, timeout, network
)

paypal_request_latency = Histogram(
    "paypal_request_latency_seconds",
    "Latency of outbound PayPal API calls",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

checkout_latency = Histogram(
    "paypal_checkout_request_latency_seconds",
    "Time taken to serve checkout API calls",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)


def checkout_latency_instrumentor(info):
    """Instrumentation function for tracking checkout endpoint latency."""
    if info.request.url.path.startswith("/api/v1/paypal") and info.method == "POST":
        checkout_latency.observe(info.modified_duration)


def init_metrics(app):
    """
    Initialize Prometheus metrics instrumentation for the FastAPI app.

    Args:
        app: FastAPI application instance

    Returns:
        Instrumentator instance
    """
    inst = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
    )

    inst.add(checkout_latency_instrumentor)

    # Expose metrics endpoint
    inst.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
    return inst


def add_metrics_auth_middleware(app):
    """
    Add middleware to protect the /metrics endpoint in production.
    For production use, set METRICS_AUTH_TOKEN environment variable.
    """

    @app.middleware("http")
    async def metrics_auth_middleware(request: Request, call_next):
        if request.url.path == "/metrics":
            if os.getenv("ENVIRONMENT", "development") in {"development", "test"}:
                return await call_next(request)

            auth_header = request.headers.get("X-Metrics-Auth")
            expected_token = os.getenv("METRICS_AUTH_TOKEN")

            if expected_token and auth_header == expected_token:
                return await call_next(request)

            # Allow internal network access (VPN/private networks)
            client_ip = request.client.host if request.client else None
            if client_ip and (
                client_ip.startswith("10.")
                or client_ip.startswith("192.168.")
                or client_ip.startswith("172.")
            ):
                return await call_next(request)

            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Metrics endpoint access denied"},
            )

        return await call_next(request)
