import os
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import ConfigDict
from pydantic_settings import BaseSettings

# Load .env file automatically
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # PayPal REST app
    PAYPAL_CLIENT_ID: str
    PAYPAL_SECRET: str
    PAYPAL_ENVIRONMENT: Literal["sandbox", "live"] = "sandbox"
    PAYPAL_BASE_URL: Optional[str] = None  # overrides the environment's host
    PAYPAL_TIMEOUT_SECONDS: float = 15.0
    PAYPAL_TOKEN_MARGIN_SECONDS: int = 300

    # Checkout experience
    FRONTEND_URL: str = "http://localhost:3000"
    BRAND_NAME: str = "PayPal Checkout"
    DEFAULT_CURRENCY: str = "USD"
    DEFAULT_COUNTRY_CODE: str = "US"
    PAYPAL_LOCALE: str = "en-US"
    PAYPAL_LANDING_PAGE: Literal["LOGIN", "GUEST_CHECKOUT", "NO_PREFERENCE"] = (
        "NO_PREFERENCE"
    )

    # App settings
    APP_NAME: str = "PayPal Checkout Service"
    DEBUG: bool = False
    ENVIRONMENT: Literal["development", "test", "production"] = "development"

    # Observability (Optional)
    OTEL_SERVICE_NAME: str = "paypal-checkout-service"
    METRICS_ENABLED: bool = True

    model_config = ConfigDict(env_file=".env", case_sensitive=True)

    def __init__(self, **kwargs):
        # Fail fast with a readable message instead of a validation dump
        if not kwargs.get("PAYPAL_CLIENT_ID") and not os.getenv("PAYPAL_CLIENT_ID"):
            raise RuntimeError(
                "PAYPAL_CLIENT_ID not set; create .env or export the variable"
            )
        super().__init__(**kwargs)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"
