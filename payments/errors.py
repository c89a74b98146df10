"""
PayPal error taxonomy.

Every failure raised by the payments layer derives from ``PayPalError`` and keeps
whatever PayPal sent back (status code, JSON payload, debug id) so that callers
can decide how to retry or report.
"""

from typing import Any


class PayPalError(Exception):
    """Base class for all PayPal failures."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: Any = None,
        transport: "TransportError | None" = None,
        order_id: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details
        self.transport = transport
        # PayPal order the failure belongs to, when one already exists
        self.order_id = order_id

    @property
    def debug_id(self) -> str | None:
        if isinstance(self.details, dict):
            return self.details.get("debug_id")
        return None

    @property
    def provider_error(self) -> str | None:
        """PayPal's machine readable error name (``name`` or OAuth ``error``)."""
        if isinstance(self.details, dict):
            return self.details.get("name") or self.details.get("error")
        return None


class TransportError(PayPalError):
    """Network failure or timeout talking to PayPal."""

    def __init__(self, message: str, *, timeout: bool = False):
        super().__init__(message)
        self.timeout = timeout


class PayPalAPIError(PayPalError):
    """Read-only lookups (orders, captures) that PayPal rejected."""


class AuthError(PayPalError):
    """Client-credentials exchange failed."""


class OrderCreationError(PayPalError):
    pass


class OrderValidationError(OrderCreationError):
    """The order request was rejected locally before reaching PayPal."""


class CaptureError(PayPalError):
    pass


class RefundError(PayPalError):
    pass
