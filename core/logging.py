import logging
import os
import sys

import structlog
from opentelemetry.instrumentation.logging import LoggingInstrumentor

# Event dicts captured when ENVIRONMENT=test
test_output = []

# Keys whose values never reach the log output
SECRET_KEYS = {
    "access_token",
    "authorization",
    "client_secret",
    "client_token",
    "number",
    "password",
    "security_code",
    "cvc",
}


def get_log_level():
    """Get log level from environment or default to INFO"""
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_log_renderer():
    """Get log renderer based on environment"""
    env = os.getenv("ENVIRONMENT", "development")
    # Use JSON format for tests and production
    if env in ["test", "production"]:
        return structlog.processors.JSONRenderer()
    # Pretty printing for local development
    return structlog.dev.ConsoleRenderer(colors=True, sort_keys=False)


def _redact(value):
    if isinstance(value, dict):
        return {
            key: "***" if str(key).lower() in SECRET_KEYS else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def redact_secrets(logger, method_name, event_dict):
    """Mask credentials and card data anywhere in the event, including nested payloads."""
    return _redact(event_dict)


def test_output_processor(logger, method_name, event_dict):
    """Custom processor that stores output for test assertions"""
    env = os.getenv("ENVIRONMENT", "development")
    if env == "test":
        test_output.append(event_dict.copy())
    return event_dict


def configure_logging():
    """Set up structlog + OTEL context injection."""
    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.ExceptionPrettyPrinter(),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            redact_secrets,
            test_output_processor,
            get_log_renderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    env = os.getenv("ENVIRONMENT", "development")
    if env == "test":
        # In test mode, write to stdout for easier capture
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.StreamHandler()

    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]  # Replace any existing handlers
    root_logger.setLevel(get_log_level())

    # urllib3 logs full URLs at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").handlers.clear()
    logging.getLogger("uvicorn.access").handlers.clear()

    LoggingInstrumentor().instrument(set_logging_format=False)


# Business Event Log Names
class BusinessEvents:
    """Standard names for business event logs"""

    API_ENTRY = "api.request"
    PAYMENT_ATTEMPT = "payment.attempt"
    PAYMENT_FAILURE = "payment.failure"
    PAYPAL_TOKEN_REFRESHED = "paypal.token.refreshed"
    PAYPAL_CLIENT_TOKEN_DEGRADED = "paypal.client_token.degraded"
    PAYPAL_ORDER_CREATED = "paypal.order.created"
    PAYPAL_CAPTURE_COMPLETED = "paypal.capture.completed"
    PAYPAL_CAPTURE_PENDING = "paypal.capture.not_completed"
    PAYPAL_REFUND_COMPLETED = "paypal.refund.completed"
    PAYPAL_API_ERROR = "paypal.api.error"
    PAYPAL_TRANSPORT_FAILURE = "paypal.transport.failure"


# Configure logging when module is imported
configure_logging()
