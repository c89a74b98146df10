import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog
from starlette.concurrency import run_in_threadpool

from core.logging import BusinessEvents
from core.metrics import paypal_token_refreshes
from payments.errors import AuthError
from payments.transport import response_payload, send

log = structlog.get_logger(__name__)

SANDBOX_BASE = "https://api-m.sandbox.paypal.com"
LIVE_BASE = "https://api-m.paypal.com"

TOKEN_SAFETY_MARGIN = timedelta(minutes=5)


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Credentials:
    """PayPal REST app credentials for one environment."""

    client_id: str
    client_secret: str
    environment: str = "sandbox"
    base_url_override: str | None = None

    @property
    def base_url(self) -> str:
        if self.base_url_override:
            return self.base_url_override.rstrip("/")
        return LIVE_BASE if self.environment == "live" else SANDBOX_BASE


@dataclass(frozen=True)
class CachedToken:
    value: str
    expires_at: datetime

    def is_valid(self, now: datetime, margin: timedelta = TOKEN_SAFETY_MARGIN) -> bool:
        return now < self.expires_at - margin


class AccessTokenProvider:
    """
    Exchanges client credentials for OAuth bearer tokens and caches them.

    The cached token is replaced in a single assignment, so readers see either the
    old token or the new one. Concurrent callers that find the cache stale share a
    single in-flight refresh instead of each hitting ``/v1/oauth2/token``.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        timeout: float = 15.0,
        margin: timedelta = TOKEN_SAFETY_MARGIN,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.credentials = credentials
        self.timeout = timeout
        self.margin = margin
        self.clock = clock
        self._cache: CachedToken | None = None
        self._inflight: asyncio.Future | None = None

    @property
    def cached(self) -> CachedToken | None:
        return self._cache

    def invalidate(self) -> None:
        self._cache = None

    async def get_access_token(self) -> str:
        cached = self._cache
        if cached is not None and cached.is_valid(self.clock(), self.margin):
            return cached.value

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._refresh())
        # shield so one cancelled caller does not cancel the shared refresh
        token = await asyncio.shield(self._inflight)
        return token.value

    async def _refresh(self) -> CachedToken:
        token = await run_in_threadpool(self._fetch_token)
        self._cache = token
        return token

    def _fetch_token(self) -> CachedToken:
        response = send(
            "POST",
            f"{self.credentials.base_url}/v1/oauth2/token",
            operation="oauth_token",
            error_cls=AuthError,
            timeout=self.timeout,
            auth=(self.credentials.client_id, self.credentials.client_secret),
            data={"grant_type": "client_credentials"},
            headers={
                "Accept": "application/json",
                "Content-Type": "application/x-www-form-urlencoded",
            },
        )
        payload = response_payload(response)
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise AuthError(
                "PayPal token response missing access_token",
                status_code=response.status_code,
                details=payload,
            )

        # Without expires_in the token is used once and never reused
        try:
            expires_in = int(payload.get("expires_in") or 0)
        except (TypeError, ValueError) as e:
            raise AuthError(
                f"PayPal token response has invalid expires_in: "
                f"{payload.get('expires_in')!r}",
                status_code=response.status_code,
                details=payload,
            ) from e
        token = CachedToken(
            value=payload["access_token"],
            expires_at=self.clock() + timedelta(seconds=expires_in),
        )
        paypal_token_refreshes.inc()
        log.info(
            BusinessEvents.PAYPAL_TOKEN_REFRESHED,
            environment=self.credentials.environment,
            expires_in=expires_in,
            expires_at=token.expires_at.isoformat(),
        )
        return token
