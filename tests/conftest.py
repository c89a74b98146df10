"""Test configuration and fixtures."""

import os
from types import SimpleNamespace
from unittest.mock import patch
from urllib.parse import urlsplit

import pytest
from fastapi.testclient import TestClient

from core.dependencies import get_paypal_client
from core.settings import Settings
from main import app
from payments.paypal_client import PayPalClient

TOKEN_PATH = "/v1/oauth2/token"
ORDERS_PATH = "/v2/checkout/orders"


class MockResponse:
    """Stand-in for ``requests.Response`` with an explicit integer status code."""

    def __init__(self, status_code, json_data=None, text=""):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text or ("" if json_data is None else "json")

    def json(self):
        if self._json_data is None:
            raise ValueError("No JSON body")
        return self._json_data


class FakePayPal:
    """
    Routes patched ``requests.request`` calls by (method, path).

    Each route holds a queue of responses; the last one is repeated once the queue
    is drained. Exceptions in the queue are raised instead of returned. Unknown
    routes answer 404 like PayPal does.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, path, *responses):
        self.routes.setdefault((method, path), []).extend(responses)

    def replace(self, method, path, *responses):
        self.routes[(method, path)] = list(responses)

    def __call__(self, method, url, timeout=None, **kwargs):
        path = urlsplit(url).path
        self.calls.append(
            SimpleNamespace(method=method, url=url, path=path, timeout=timeout, **kwargs)
        )
        queue = self.routes.get((method, path))
        if not queue:
            return MockResponse(
                404,
                {
                    "name": "RESOURCE_NOT_FOUND",
                    "message": "The specified resource does not exist.",
                    "debug_id": "f00dbabe",
                },
            )
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    def calls_to(self, method, path):
        return [call for call in self.calls if call.method == method and call.path == path]


def order_response(order_id="5O190127TN364715T", status="CREATED", links=None):
    return {
        "id": order_id,
        "status": status,
        "links": links
        if links is not None
        else [
            {
                "href": f"https://api-m.sandbox.paypal.com/v2/checkout/orders/{order_id}",
                "rel": "self",
                "method": "GET",
            },
            {
                "href": f"https://www.sandbox.paypal.com/checkoutnow?token={order_id}",
                "rel": "payer-action",
                "method": "GET",
            },
        ],
    }


def completed_order(order_id="5O190127TN364715T", capture_id="3C679366HH908993F"):
    return {
        "id": order_id,
        "status": "COMPLETED",
        "payer": {
            "name": {"given_name": "John", "surname": "Doe"},
            "email_address": "customer@example.com",
            "payer_id": "QYR5Z8XDVJNXQ",
        },
        "purchase_units": [
            {
                "reference_id": "default",
                "payments": {
                    "captures": [
                        {
                            "id": capture_id,
                            "status": "COMPLETED",
                            "amount": {"currency_code": "USD", "value": "100.00"},
                            "final_capture": True,
                            "seller_receivable_breakdown": {
                                "gross_amount": {"currency_code": "USD", "value": "100.00"},
                                "paypal_fee": {"currency_code": "USD", "value": "3.00"},
                                "net_amount": {"currency_code": "USD", "value": "97.00"},
                            },
                        }
                    ]
                },
            }
        ],
    }


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Setup test environment variables before each test."""
    original_env = dict(os.environ)

    os.environ.update(
        {
            "PAYPAL_CLIENT_ID": "test_client_id",
            "PAYPAL_SECRET": "test_secret",
            "PAYPAL_ENVIRONMENT": "sandbox",
            "FRONTEND_URL": "https://shop.example.com",
            "BRAND_NAME": "Test Shop",
            "APP_NAME": "Test Checkout",
            "ENVIRONMENT": "development",
            "DISABLE_TRACING": "true",
            "DEBUG": "true",
        }
    )

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def mock_settings():
    return Settings(
        PAYPAL_CLIENT_ID="test_client_id",
        PAYPAL_SECRET="test_secret",
        PAYPAL_ENVIRONMENT="sandbox",
        FRONTEND_URL="https://shop.example.com",
        BRAND_NAME="Test Shop",
        APP_NAME="Test Checkout",
        DEBUG=True,
        ENVIRONMENT="development",
    )


@pytest.fixture
def paypal_api():
    """Fake PayPal REST API with a working token endpoint."""
    fake = FakePayPal()
    fake.add(
        "POST",
        TOKEN_PATH,
        MockResponse(
            200,
            {
                "access_token": "A21AAtest_access_token",
                "token_type": "Bearer",
                "expires_in": 32400,
            },
        ),
    )
    with patch("payments.transport.requests.request", side_effect=fake):
        yield fake


@pytest.fixture
def paypal_client(mock_settings, paypal_api):
    return PayPalClient(mock_settings)


@pytest.fixture
def client(mock_settings, paypal_client):
    """Test client wired to the fake PayPal API."""
    app.dependency_overrides[get_paypal_client] = lambda: paypal_client

    with patch("core.dependencies._settings", mock_settings):
        with TestClient(app) as test_client:
            yield test_client

    app.dependency_overrides.clear()
