"""
API Schemas Module

This module defines Pydantic models for request/response validation. Order
creation reuses ``payments.models.OrderRequest`` directly as its request body.
"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class CaptureOut(BaseModel):
    status: str
    order_id: Optional[str] = None
    capture_id: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    fee: Optional[str] = None
    net_amount: Optional[str] = None
    payer_email: Optional[str] = None
    payer_name: Optional[str] = None
    order_status: Optional[str] = None
    completed: bool = False

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    order_id: str
    status: str
    approval_url: Optional[str] = None
    capture: Optional[CaptureOut] = None

    model_config = ConfigDict(from_attributes=True)


class RefundOut(BaseModel):
    status: str
    capture_id: str
    refund_id: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CaptureOrderIn(BaseModel):
    note_to_payer: Optional[str] = None
    final_capture: Optional[bool] = None


class AuthorizationCaptureIn(BaseModel):
    amount: Decimal
    currency: Optional[str] = None
    final_capture: bool = True
    note_to_payer: Optional[str] = None
    invoice_id: Optional[str] = None


class RefundIn(BaseModel):
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    note: Optional[str] = None


class PaymentSourceIn(BaseModel):
    """Replacement ``payment_source`` object, forwarded to PayPal as-is."""

    payment_source: dict[str, Any]
    capture: bool = True


class ClientTokenOut(BaseModel):
    client_token: str
    degraded: bool = False
    expires_in: Optional[int] = None
    note: Optional[str] = None


class CredentialsCheckOut(BaseModel):
    success: bool
    environment: str
    token_preview: Optional[str] = None
