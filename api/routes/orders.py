"""
Order routes: create, look up, update payment source and capture PayPal orders.
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Body, Depends

from api.schemas import CaptureOrderIn, CaptureOut, OrderOut, PaymentSourceIn
from core.dependencies import get_paypal_client
from payments.models import OrderRequest
from payments.paypal_client import PayPalClient

log = structlog.get_logger(__name__)

router = APIRouter()


@router.post("", response_model=OrderOut, status_code=201)
async def create_order(
    order: OrderRequest, client: PayPalClient = Depends(get_paypal_client)
):
    """
    Create a PayPal order.

    `payment_source` picks the flow:
    - `paypal` (default): returns `approval_url`; redirect the buyer there, then
      call `/orders/{id}/capture` once they return.
    - `card`: card data is sent with the order and the order is captured right
      away; `capture` holds the result.
    - `vaulted-token`: charges a previously vaulted payment token (`vault_id`).

    **Request Example:**
    ```json
    {
        "currency": "USD",
        "description": "Order #1001",
        "items": [
            {"name": "Widget", "unit_amount": "1.50", "quantity": 2},
            {"name": "Gadget", "unit_amount": "3.00", "quantity": 1}
        ],
        "tax": "0.45"
    }
    ```
    """
    created = await client.create_order(order)
    return OrderOut.model_validate(created)


@router.get("/{order_id}")
async def get_order(
    order_id: str, client: PayPalClient = Depends(get_paypal_client)
) -> dict[str, Any]:
    """PayPal's order representation, unmodified."""
    return await client.get_order(order_id)


@router.post("/{order_id}/capture", response_model=CaptureOut)
async def capture_order(
    order_id: str,
    options: Optional[CaptureOrderIn] = Body(default=None),
    client: PayPalClient = Depends(get_paypal_client),
):
    """
    Capture an approved order.

    A non-COMPLETED status is returned with HTTP 200 and `completed: false`; only
    PayPal errors produce an error response.
    """
    options = options or CaptureOrderIn()
    result = await client.capture_order(
        order_id,
        note_to_payer=options.note_to_payer,
        final_capture=options.final_capture,
    )
    return CaptureOut.model_validate(result)


@router.patch("/{order_id}/payment-source", response_model=Optional[CaptureOut])
async def update_payment_source(
    order_id: str,
    update: PaymentSourceIn,
    client: PayPalClient = Depends(get_paypal_client),
):
    """Replace the order's payment source (hosted card fields), then capture it."""
    await client.update_payment_source(order_id, update.payment_source)
    if not update.capture:
        return None
    result = await client.capture_order(order_id)
    return CaptureOut.model_validate(result)
