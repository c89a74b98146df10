"""
Payment data models.

Inbound order requests are pydantic models so they can be validated at the HTTP
edge and reused as-is by the client; results handed back to callers are plain
dataclasses carrying the normalized fields plus PayPal's raw representation.
"""

import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class PaymentSourceKind(str, enum.Enum):
    paypal = "paypal"
    card = "card"
    vaulted_token = "vaulted-token"


class OrderStatus(str, enum.Enum):
    created = "CREATED"
    saved = "SAVED"
    approved = "APPROVED"
    voided = "VOIDED"
    completed = "COMPLETED"
    payer_action_required = "PAYER_ACTION_REQUIRED"


KNOWN_ORDER_STATUSES = {status.value for status in OrderStatus}
TERMINAL_CAPTURE_STATUSES = {"COMPLETED", "DECLINED", "VOIDED"}


class OrderItem(BaseModel):
    name: str = "Item"
    unit_amount: Decimal = Field(
        validation_alias=AliasChoices("unit_amount", "unit_price", "price")
    )
    quantity: int = Field(
        default=1, ge=1, validation_alias=AliasChoices("quantity", "qty")
    )
    sku: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None  # DIGITAL_GOODS, PHYSICAL_GOODS, DONATION


class Address(BaseModel):
    address_line_1: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("address_line_1", "street")
    )
    address_line_2: Optional[str] = None
    admin_area_2: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("admin_area_2", "city")
    )
    admin_area_1: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("admin_area_1", "state", "region"),
    )
    postal_code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("postal_code", "zip")
    )
    country_code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("country_code", "country")
    )


class CardDetails(BaseModel):
    number: str
    expiry: str  # MM/YY
    cvc: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("cvc", "security_code")
    )
    name: Optional[str] = None
    billing_address: Optional[Address] = None


class ShippingDetails(BaseModel):
    full_name: Optional[str] = None
    address: Optional[Address] = None


class CustomerDetails(BaseModel):
    email: Optional[str] = None
    given_name: Optional[str] = None
    surname: Optional[str] = None


class OrderRequest(BaseModel):
    """Everything needed to create one single-purchase-unit CAPTURE order."""

    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    description: Optional[str] = None
    items: list[OrderItem] = Field(default_factory=list)

    # breakdown components, only sent when non-zero
    tax: Decimal = Decimal("0")
    handling: Decimal = Decimal("0")
    insurance: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    shipping_discount: Decimal = Decimal("0")

    payment_source: PaymentSourceKind = PaymentSourceKind.paypal
    card: Optional[CardDetails] = None
    vault_id: Optional[str] = None

    shipping_details: Optional[ShippingDetails] = None
    customer: Optional[CustomerDetails] = None

    return_url: Optional[str] = None
    cancel_url: Optional[str] = None

    reference_id: Optional[str] = None
    custom_id: Optional[str] = None
    invoice_id: Optional[str] = None
    soft_descriptor: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


@dataclass
class CaptureResult:
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
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def completed(self) -> bool:
        return self.status == "COMPLETED"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CAPTURE_STATUSES


@dataclass
class RefundResult:
    status: str
    capture_id: str
    refund_id: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class CreatedOrder:
    order_id: str
    status: str
    request_id: str
    approval_url: Optional[str] = None
    capture: Optional[CaptureResult] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class ClientToken:
    value: str
    degraded: bool = False
    expires_in: Optional[int] = None
