from unittest.mock import patch

import structlog

from core.logging import BusinessEvents, redact_secrets
from tests.conftest import ORDERS_PATH, MockResponse, order_response


class _TestLogger:
    def __init__(self):
        self.output = []

    def __call__(self, logger, method_name, event_dict):
        """Process log events and store them for test assertions"""
        self.output.append(event_dict.copy())
        return event_dict


def _configure(test_logger):
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            test_logger,  # Add our test logger
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,  # Don't cache to ensure fresh config
    )


def test_structlog_json():
    test_logger = _TestLogger()
    _configure(test_logger)

    log = structlog.get_logger("test")
    log.bind(foo="bar").info("hello world")

    assert len(test_logger.output) > 0
    log_dict = test_logger.output[-1]

    assert log_dict["foo"] == "bar"
    assert log_dict["event"] == "hello world"
    assert "timestamp" in log_dict
    assert log_dict["level"] == "info"


def test_payment_log_format():
    test_logger = _TestLogger()
    _configure(test_logger)

    log = structlog.get_logger("test.payments")
    log.bind(order_id="5O190127TN364715T", amount="10.00", currency="USD").info(
        BusinessEvents.PAYPAL_CAPTURE_COMPLETED
    )

    log_dict = test_logger.output[-1]

    assert log_dict["order_id"] == "5O190127TN364715T"
    assert log_dict["amount"] == "10.00"
    assert log_dict["currency"] == "USD"
    assert log_dict["event"] == "paypal.capture.completed"
    assert log_dict["level"] == "info"


def test_secrets_are_redacted():
    event = redact_secrets(
        None,
        "info",
        {
            "event": "paypal.request",
            "access_token": "A21AAsecret",
            "details": {
                "payment_source": {
                    "card": {"number": "4111111111111111", "security_code": "123"}
                },
                "links": [{"Authorization": "Bearer A21AAsecret"}],
            },
        },
    )

    assert event["access_token"] == "***"
    card = event["details"]["payment_source"]["card"]
    assert card == {"number": "***", "security_code": "***"}
    assert event["details"]["links"] == [{"Authorization": "***"}]
    assert event["event"] == "paypal.request"


def test_order_creation_is_logged(client, paypal_api):
    """Order creation emits the attempt, creation and request log entries."""
    test_logger = _TestLogger()
    _configure(test_logger)
    paypal_api.add("POST", ORDERS_PATH, MockResponse(201, order_response()))

    # module-level loggers may already be cached under the default configuration
    fresh = structlog.get_logger("payments.paypal_client")
    with patch("payments.paypal_client.log", fresh):
        response = client.post("/api/v1/paypal/orders", json={"amount": "10.00"})
    assert response.status_code == 201

    api_logs = [
        log for log in test_logger.output if log.get("event") == BusinessEvents.API_ENTRY
    ]
    assert len(api_logs) > 0
    assert api_logs[0]["method"] == "POST"
    assert api_logs[0]["path"] == "/api/v1/paypal/orders"
    assert api_logs[0]["status_code"] == 201

    attempts = [
        log
        for log in test_logger.output
        if log.get("event") == BusinessEvents.PAYMENT_ATTEMPT
    ]
    assert attempts[0]["flow"] == "paypal"
    assert attempts[0]["amount"] == "10.00"

    created = [
        log
        for log in test_logger.output
        if log.get("event") == BusinessEvents.PAYPAL_ORDER_CREATED
    ]
    assert created[0]["order_id"] == "5O190127TN364715T"
    assert created[0]["status"] == "CREATED"
