"""
Blocking HTTP transport for the PayPal REST API.

All calls go through ``send`` so that timeouts, latency metrics, tracing spans and
error translation behave the same for every endpoint. The functions here block;
the async client runs them through ``run_in_threadpool``.
"""

import time
import uuid
from typing import Any

import requests
import structlog
from opentelemetry import trace

from core.logging import BusinessEvents
from core.metrics import paypal_api_errors, paypal_request_latency
from payments.errors import PayPalError, TransportError

log = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


def new_request_id() -> str:
    """Fresh ``PayPal-Request-Id``; PayPal replays the first response for a reused id."""
    return str(uuid.uuid4())


def response_payload(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text} if response.text else None


def error_message(operation: str, response: requests.Response, payload: Any) -> str:
    message = f"{operation} failed with HTTP {response.status_code}"
    if isinstance(payload, dict):
        name = payload.get("name") or payload.get("error")
        detail = payload.get("message") or payload.get("error_description")
        if name and detail:
            message += f": {name}: {detail}"
        elif name or detail:
            message += f": {name or detail}"
    return message


def send(
    method: str,
    url: str,
    *,
    operation: str,
    error_cls: type[PayPalError],
    timeout: float,
    **kwargs,
) -> requests.Response:
    """
    Perform one HTTP request against PayPal.

    Args:
        method: HTTP verb
        url: Absolute URL
        operation: Short name used for logs, metrics and span names
        error_cls: Exception raised for non-2xx answers and transport failures
        timeout: Seconds before the call is abandoned

    Returns:
        The successful ``requests.Response``

    Raises:
        error_cls: PayPal answered non-2xx, or the request never completed (in
            which case ``.transport`` holds the underlying ``TransportError``)
    """
    started = time.perf_counter()
    with tracer.start_as_current_span(f"paypal.{operation}") as span:
        span.set_attribute("http.method", method)
        span.set_attribute("http.url", url)
        try:
            response = requests.request(method, url, timeout=timeout, **kwargs)
        except requests.Timeout as e:
            paypal_api_errors.labels(operation=operation, kind="timeout").inc()
            transport = TransportError(
                f"{operation} timed out after {timeout}s", timeout=True
            )
            log.error(
                BusinessEvents.PAYPAL_TRANSPORT_FAILURE,
                operation=operation,
                timeout=True,
                error=str(e),
            )
            raise error_cls(str(transport), transport=transport) from transport
        except requests.RequestException as e:
            paypal_api_errors.labels(operation=operation, kind="network").inc()
            transport = TransportError(f"{operation} network error: {e}")
            log.error(
                BusinessEvents.PAYPAL_TRANSPORT_FAILURE,
                operation=operation,
                timeout=False,
                error=str(e),
            )
            raise error_cls(str(transport), transport=transport) from transport
        finally:
            paypal_request_latency.labels(operation=operation).observe(
                time.perf_counter() - started
            )

        span.set_attribute("http.status_code", response.status_code)
        if not 200 <= response.status_code < 300:
            payload = response_payload(response)
            paypal_api_errors.labels(operation=operation, kind="http").inc()
            log.error(
                BusinessEvents.PAYPAL_API_ERROR,
                operation=operation,
                status_code=response.status_code,
                debug_id=payload.get("debug_id") if isinstance(payload, dict) else None,
                details=payload,
            )
            raise error_cls(
                error_message(operation, response, payload),
                status_code=response.status_code,
                details=payload,
            )
        return response
