"""
Payment routes: authorization captures, capture lookups and refunds.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from api.schemas import AuthorizationCaptureIn, CaptureOut, RefundIn, RefundOut
from core.dependencies import get_paypal_client
from payments.paypal_client import PayPalClient

router = APIRouter()


@router.post("/authorizations/{authorization_id}/capture", response_model=CaptureOut)
async def capture_authorization(
    authorization_id: str,
    capture: AuthorizationCaptureIn,
    client: PayPalClient = Depends(get_paypal_client),
):
    """Capture all or part of an authorization; `final_capture=false` keeps it open."""
    result = await client.capture_authorization(
        authorization_id,
        capture.amount,
        currency=capture.currency,
        final_capture=capture.final_capture,
        note_to_payer=capture.note_to_payer,
        invoice_id=capture.invoice_id,
    )
    return CaptureOut.model_validate(result)


@router.get("/captures/{capture_id}")
async def get_capture(
    capture_id: str, client: PayPalClient = Depends(get_paypal_client)
) -> dict[str, Any]:
    return await client.get_capture(capture_id)


@router.post("/captures/{capture_id}/refund", response_model=RefundOut)
async def refund_capture(
    capture_id: str,
    refund: Optional[RefundIn] = Body(default=None),
    client: PayPalClient = Depends(get_paypal_client),
):
    """
    Refund a capture. Leave `amount` out for a full refund; a partial refund
    needs `currency`, which must be the capture's own currency.
    """
    refund = refund or RefundIn()
    result = await client.refund(
        capture_id, amount=refund.amount, currency=refund.currency, note=refund.note
    )
    return RefundOut.model_validate(result)
