from typing import Optional

from core.settings import Settings
from payments.paypal_client import PayPalClient

# Settings singleton
_settings = None

# One client per process so the token cache is shared by every request
_paypal_client = None


def get_settings() -> Settings:
    """Dependency that provides application settings."""
    assert (
        _settings is not None
    ), "Settings not initialized. Make sure startup() was called."
    return _settings


def loaded_settings() -> Optional[Settings]:
    """Settings if startup has run, else None; safe outside a request."""
    return _settings


def init_settings():
    """Initialize settings singleton."""
    global _settings
    _settings = Settings()


def clear_settings():
    """Clear settings and the client built from them."""
    global _settings, _paypal_client
    _settings = None
    _paypal_client = None


def get_paypal_client() -> PayPalClient:
    """Dependency that provides the process-wide PayPal client."""
    global _paypal_client
    if _paypal_client is None:
        _paypal_client = PayPalClient(get_settings())
    return _paypal_client
