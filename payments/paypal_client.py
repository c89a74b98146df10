"""
PayPal Orders v2 / Payments v2 client.

This module drives the whole order lifecycle:
- Order creation (hosted PayPal checkout, direct card, vaulted token)
- Order capture and authorization capture
- Refunds (full and partial)
- Read-only order/capture lookups
- Client token generation for hosted card fields

Payloads are shaped by ``payments.orders``; every call here authenticates with a
bearer token from ``AccessTokenProvider`` and never retries on its own.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Any, Optional

import structlog
from starlette.concurrency import run_in_threadpool

from core.logging import BusinessEvents
from core.metrics import paypal_captures, paypal_orders_created, paypal_refunds
from core.settings import Settings
from payments.errors import (
    AuthError,
    CaptureError,
    OrderCreationError,
    OrderValidationError,
    PayPalAPIError,
    PayPalError,
    RefundError,
)
from payments.models import (
    CaptureResult,
    ClientToken,
    CreatedOrder,
    OrderRequest,
    PaymentSourceKind,
    RefundResult,
)
from payments.orders import (
    CheckoutDefaults,
    build_order_payload,
    capture_from_record,
    capture_result_from_order,
    extract_approval_url,
    format_money,
    money,
    normalize_currency,
    refund_result,
)
from payments.token import AccessTokenProvider, Credentials
from payments.transport import new_request_id, response_payload, send

log = structlog.get_logger(__name__)


class PayPalClient:
    def __init__(
        self,
        settings: Settings,
        token_provider: Optional[AccessTokenProvider] = None,
    ):
        self.settings = settings
        self.credentials = Credentials(
            client_id=settings.PAYPAL_CLIENT_ID,
            client_secret=settings.PAYPAL_SECRET,
            environment=settings.PAYPAL_ENVIRONMENT,
            base_url_override=settings.PAYPAL_BASE_URL,
        )
        self.base = self.credentials.base_url
        self.timeout = settings.PAYPAL_TIMEOUT_SECONDS
        frontend = settings.FRONTEND_URL.rstrip("/")
        self.defaults = CheckoutDefaults(
            brand_name=settings.BRAND_NAME,
            return_url=f"{frontend}/complete-order",
            cancel_url=f"{frontend}/cancel-order",
            currency=settings.DEFAULT_CURRENCY,
            country_code=settings.DEFAULT_COUNTRY_CODE,
            locale=settings.PAYPAL_LOCALE,
            landing_page=settings.PAYPAL_LANDING_PAGE,
        )
        self.tokens = token_provider or AccessTokenProvider(
            self.credentials,
            timeout=self.timeout,
            margin=timedelta(seconds=settings.PAYPAL_TOKEN_MARGIN_SECONDS),
        )

    async def _call(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        error_cls: type[PayPalError],
        body: Any = None,
        request_id: Optional[str] = None,
        prefer_representation: bool = False,
        content_type: str = "application/json",
    ) -> dict[str, Any]:
        token = await self.tokens.get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": content_type,
            "Accept": "application/json",
        }
        if request_id:
            headers["PayPal-Request-Id"] = request_id
        if prefer_representation:
            headers["Prefer"] = "return=representation"

        try:
            response = await run_in_threadpool(
                send,
                method,
                f"{self.base}{path}",
                operation=operation,
                error_cls=error_cls,
                timeout=self.timeout,
                json=body,
                headers=headers,
            )
        except PayPalError as e:
            if e.status_code == 401:
                # token revoked or expired early; next call fetches a fresh one
                self.tokens.invalidate()
            raise

        payload = response_payload(response)
        return payload if isinstance(payload, dict) else {}

    async def create_order(self, request: OrderRequest) -> CreatedOrder:
        """
        Create a CAPTURE order for the request's payment source.

        The card flow captures the order straight away, so the returned
        ``CreatedOrder.capture`` is populated; the PayPal flow returns the approval
        URL the buyer must be redirected to.
        """
        payload = build_order_payload(request, self.defaults)
        flow = request.payment_source
        amount = payload["purchase_units"][0]["amount"]
        request_id = new_request_id()

        log.info(
            BusinessEvents.PAYMENT_ATTEMPT,
            provider="paypal",
            flow=flow.value,
            amount=amount["value"],
            currency=amount["currency_code"],
            request_id=request_id,
        )

        try:
            order = await self._call(
                "POST",
                "/v2/checkout/orders",
                operation="create_order",
                error_cls=OrderCreationError,
                body=payload,
                request_id=request_id,
                prefer_representation=True,
            )
        except PayPalError as e:
            log.error(
                BusinessEvents.PAYMENT_FAILURE,
                provider="paypal",
                flow=flow.value,
                error=str(e),
                debug_id=e.debug_id,
            )
            raise

        order_id = order.get("id")
        status = order.get("status") or "UNKNOWN"
        if not order_id:
            raise OrderCreationError(
                "PayPal order response missing id", status_code=200, details=order
            )

        approval_url = extract_approval_url(order)
        if flow == PaymentSourceKind.paypal and not approval_url:
            raise OrderCreationError(
                f"PayPal order {order_id} has no approval link",
                status_code=200,
                details=order,
                order_id=order_id,
            )

        capture = None
        if flow == PaymentSourceKind.card and status != "PAYER_ACTION_REQUIRED":
            if status == "COMPLETED":
                capture = capture_result_from_order(order)
                paypal_captures.labels(status=capture.status).inc()
            else:
                try:
                    capture = await self.capture_order(order_id)
                except CaptureError as e:
                    # the order already exists on PayPal
                    e.order_id = order_id
                    log.error(
                        BusinessEvents.PAYMENT_FAILURE,
                        provider="paypal",
                        flow=flow.value,
                        order_id=order_id,
                        order_status=status,
                        error=str(e),
                        debug_id=e.debug_id,
                    )
                    raise
            status = capture.order_status or status

        paypal_orders_created.labels(flow=flow.value).inc()
        log.info(
            BusinessEvents.PAYPAL_ORDER_CREATED,
            order_id=order_id,
            status=status,
            flow=flow.value,
            amount=amount["value"],
            currency=amount["currency_code"],
        )
        return CreatedOrder(
            order_id=order_id,
            status=status,
            request_id=request_id,
            approval_url=approval_url,
            capture=capture,
            raw=order,
        )

    async def capture_order(
        self,
        order_id: str,
        note_to_payer: Optional[str] = None,
        final_capture: Optional[bool] = None,
    ) -> CaptureResult:
        if not order_id:
            raise CaptureError("Order id is required")

        body = {
            key: value
            for key, value in (
                ("note_to_payer", note_to_payer),
                ("final_capture", final_capture),
            )
            if value is not None
        }
        order = await self._call(
            "POST",
            f"/v2/checkout/orders/{order_id}/capture",
            operation="capture_order",
            error_cls=CaptureError,
            body=body,
            request_id=new_request_id(),
            prefer_representation=True,
        )
        result = capture_result_from_order(order)
        result.order_id = result.order_id or order_id
        self._record_capture(result)
        return result

    async def capture_authorization(
        self,
        authorization_id: str,
        amount: Any,
        currency: Optional[str] = None,
        final_capture: bool = True,
        note_to_payer: Optional[str] = None,
        invoice_id: Optional[str] = None,
    ) -> CaptureResult:
        """
        Capture all or part of an authorized payment.

        ``final_capture=False`` leaves the authorization open for further partial
        captures.
        """
        if not authorization_id:
            raise CaptureError("Authorization id is required")
        try:
            code = normalize_currency(currency, self.defaults.currency)
            value = Decimal(format_money(amount, code))
        except OrderValidationError as e:
            raise CaptureError(str(e)) from e
        if value <= 0:
            raise CaptureError("Capture amount must be a positive number")

        body: dict[str, Any] = {
            "amount": money(value, code),
            "final_capture": final_capture,
        }
        if note_to_payer:
            body["note_to_payer"] = note_to_payer
        if invoice_id:
            body["invoice_id"] = invoice_id

        capture = await self._call(
            "POST",
            f"/v2/payments/authorizations/{authorization_id}/capture",
            operation="capture_authorization",
            error_cls=CaptureError,
            body=body,
            request_id=new_request_id(),
            prefer_representation=True,
        )
        result = capture_from_record(capture)
        self._record_capture(result, authorization_id=authorization_id)
        return result

    async def refund(
        self,
        capture_id: str,
        amount: Any = None,
        currency: Optional[str] = None,
        note: Optional[str] = None,
    ) -> RefundResult:
        """Refund a capture; omitting ``amount`` refunds it in full."""
        if not capture_id:
            raise RefundError("Capture id is required")

        body: dict[str, Any] = {}
        requested = None
        if amount is not None:
            # must match the capture currency, which only the caller knows
            if not currency:
                raise RefundError("Currency is required for a partial refund")
            try:
                code = normalize_currency(currency)
                requested = format_money(amount, code)
            except OrderValidationError as e:
                raise RefundError(str(e)) from e
            if Decimal(requested) <= 0:
                raise RefundError("Refund amount must be a positive number")
            body["amount"] = {"currency_code": code, "value": requested}
        if note:
            body["note_to_payer"] = note

        payload = await self._call(
            "POST",
            f"/v2/payments/captures/{capture_id}/refund",
            operation="refund",
            error_cls=RefundError,
            body=body,
            request_id=new_request_id(),
            prefer_representation=True,
        )
        result = refund_result(payload, capture_id)

        if result.amount is None:
            if requested is not None:
                result.amount, result.currency = requested, body["amount"]["currency_code"]
            else:
                await self._fill_full_refund_amount(result)

        kind = "partial" if requested is not None else "full"
        paypal_refunds.labels(kind=kind).inc()
        log.info(
            BusinessEvents.PAYPAL_REFUND_COMPLETED,
            capture_id=capture_id,
            refund_id=result.refund_id,
            status=result.status,
            amount=result.amount,
            currency=result.currency,
            kind=kind,
        )
        return result

    async def _fill_full_refund_amount(self, result: RefundResult) -> None:
        try:
            capture = await self.get_capture(result.capture_id)
        except PayPalError as e:
            log.warning(
                "paypal.refund.amount_unknown",
                capture_id=result.capture_id,
                error=str(e),
            )
            return
        amount = capture.get("amount") or {}
        result.amount = amount.get("value")
        result.currency = amount.get("currency_code")

    async def get_order(self, order_id: str) -> dict[str, Any]:
        return await self._call(
            "GET",
            f"/v2/checkout/orders/{order_id}",
            operation="get_order",
            error_cls=PayPalAPIError,
        )

    async def get_capture(self, capture_id: str) -> dict[str, Any]:
        return await self._call(
            "GET",
            f"/v2/payments/captures/{capture_id}",
            operation="get_capture",
            error_cls=PayPalAPIError,
        )

    async def update_payment_source(
        self, order_id: str, payment_source: dict[str, Any]
    ) -> None:
        """Replace an order's payment source ahead of capture (card fields flow)."""
        await self._call(
            "PATCH",
            f"/v2/checkout/orders/{order_id}",
            operation="update_payment_source",
            error_cls=CaptureError,
            body=[{"op": "replace", "path": "/payment_source", "value": payment_source}],
            content_type="application/json-patch+json",
        )

    async def generate_client_token(self) -> ClientToken:
        """
        Client token for PayPal's hosted card fields.

        If the identity endpoint fails, the raw access token is handed out instead,
        flagged as degraded. Credential failures are not masked.
        """
        try:
            payload = await self._call(
                "POST",
                "/v1/identity/generate-token",
                operation="client_token",
                error_cls=PayPalAPIError,
                body={},
            )
            if not payload.get("client_token"):
                raise PayPalAPIError(
                    "PayPal client token response missing client_token",
                    status_code=200,
                    details=payload,
                )
        except AuthError:
            raise
        except PayPalAPIError as e:
            log.warning(
                BusinessEvents.PAYPAL_CLIENT_TOKEN_DEGRADED,
                error=str(e),
                debug_id=e.debug_id,
            )
            return ClientToken(value=await self.tokens.get_access_token(), degraded=True)

        return ClientToken(
            value=payload["client_token"], expires_in=payload.get("expires_in")
        )

    async def test_connection(self) -> bool:
        """Test the PayPal credentials by performing a token exchange."""
        try:
            await self.tokens.get_access_token()
            return True
        except AuthError:
            return False

    def _record_capture(self, result: CaptureResult, **context) -> None:
        paypal_captures.labels(status=result.status).inc()
        event = (
            BusinessEvents.PAYPAL_CAPTURE_COMPLETED
            if result.completed
            else BusinessEvents.PAYPAL_CAPTURE_PENDING
        )
        log.info(
            event,
            order_id=result.order_id,
            capture_id=result.capture_id,
            status=result.status,
            amount=result.amount,
            currency=result.currency,
            **context,
        )
