"""Test the metrics module."""

import pytest
from unittest.mock import patch, MagicMock

from core.metrics import (
    checkout_latency,
    checkout_latency_instrumentor,
    init_metrics,
    paypal_api_errors,
    paypal_captures,
    paypal_orders_created,
    paypal_refunds,
    paypal_request_latency,
    paypal_token_refreshes,
)
from payments.errors import PayPalAPIError
from payments.models import OrderRequest
from tests.conftest import (
    ORDERS_PATH,
    MockResponse,
    completed_order,
    order_response,
)


def test_orders_created_counter_with_labels():
    """Test orders counter with flow labels."""
    for flow in ["paypal", "card", "vaulted-token"]:
        metric = paypal_orders_created.labels(flow=flow)
        initial = metric._value._value
        metric.inc()
        assert metric._value._value == initial + 1
        assert metric._labelvalues == (flow,)


def test_request_latency_histogram():
    """Test outbound latency histogram records observations."""
    metric = paypal_request_latency.labels(operation="create_order")
    for latency in [0.05, 0.3, 1.2, 3.0, 7.5, 15.0]:
        metric.observe(latency)

    assert metric._sum._value > 0


def test_metrics_naming_convention():
    assert paypal_orders_created._name == "paypal_orders_created"  # Not _total
    assert paypal_captures._name == "paypal_captures"
    assert paypal_refunds._name == "paypal_refunds"
    assert paypal_token_refreshes._name == "paypal_token_refreshes"
    assert paypal_request_latency._name == "paypal_request_latency_seconds"


@pytest.mark.asyncio
async def test_order_and_capture_counters_follow_client(paypal_client, paypal_api):
    created = paypal_orders_created.labels(flow="paypal")
    captured = paypal_captures.labels(status="COMPLETED")
    initial_created = created._value._value
    initial_captured = captured._value._value

    paypal_api.add("POST", ORDERS_PATH, MockResponse(201, order_response()))
    paypal_api.add(
        "POST",
        f"{ORDERS_PATH}/5O190127TN364715T/capture",
        MockResponse(201, completed_order()),
    )

    order = await paypal_client.create_order(OrderRequest(amount="10.00"))
    await paypal_client.capture_order(order.order_id)

    assert created._value._value == initial_created + 1
    assert captured._value._value == initial_captured + 1


@pytest.mark.asyncio
async def test_token_refresh_counter(paypal_client, paypal_api):
    initial = paypal_token_refreshes._value._value

    await paypal_client.tokens.get_access_token()
    await paypal_client.tokens.get_access_token()

    assert paypal_token_refreshes._value._value == initial + 1


@pytest.mark.asyncio
async def test_api_error_counter(paypal_client, paypal_api):
    metric = paypal_api_errors.labels(operation="get_capture", kind="http")
    initial = metric._value._value

    with pytest.raises(PayPalAPIError):
        await paypal_client.get_capture("MISSING")

    assert metric._value._value == initial + 1


def test_init_metrics_with_app():
    """Test metrics initialization with FastAPI app."""
    mock_app = MagicMock()

    with patch("core.metrics.Instrumentator") as mock_instrumentator:
        mock_inst = MagicMock()
        mock_instrumentator.return_value = mock_inst
        mock_inst.add.return_value = mock_inst
        mock_inst.instrument.return_value = mock_inst
        mock_inst.expose.return_value = mock_inst

        result = init_metrics(mock_app)

        mock_instrumentator.assert_called_once()
        mock_inst.add.assert_called_with(checkout_latency_instrumentor)
        mock_inst.instrument.assert_called_with(mock_app)
        mock_inst.expose.assert_called_with(
            mock_app, endpoint="/metrics", include_in_schema=False
        )
        assert result == mock_inst


def test_checkout_latency_instrumentor():
    mock_info = MagicMock()
    mock_info.request.url.path = "/api/v1/paypal/orders"
    mock_info.method = "POST"
    mock_info.modified_duration = 1.5
    initial = checkout_latency._sum._value

    checkout_latency_instrumentor(mock_info)

    assert checkout_latency._sum._value == initial + 1.5


def test_checkout_latency_ignores_other_paths():
    mock_info = MagicMock()
    mock_info.request.url.path = "/healthz"
    mock_info.method = "GET"
    mock_info.modified_duration = 2.0
    initial = checkout_latency._sum._value

    checkout_latency_instrumentor(mock_info)

    assert checkout_latency._sum._value == initial


def test_metrics_endpoint_integration(client):
    """Test that metrics endpoint is available and returns Prometheus format."""
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "text/plain" in response.headers.get("content-type", "")

    content = response.text
    assert "paypal_orders_created_total" in content
    assert "paypal_request_latency_seconds" in content
    assert "paypal_checkout_request_latency_seconds" in content


def test_metrics_endpoint_requires_auth_in_production(client, monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("METRICS_AUTH_TOKEN", "s3cret")

    denied = client.get("/metrics")
    allowed = client.get("/metrics", headers={"X-Metrics-Auth": "s3cret"})

    assert denied.status_code == 401
    assert allowed.status_code == 200
