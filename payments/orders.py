"""
Order payload shaping and response normalization.

Plain functions that turn an ``OrderRequest`` into the JSON body PayPal's Orders v2
API expects, and turn PayPal's capture/refund representations into the stable
result types of ``payments.models``. Nothing here performs I/O.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from payments.errors import OrderValidationError
from payments.models import (
    Address,
    CaptureResult,
    OrderRequest,
    PaymentSourceKind,
    RefundResult,
)

SUPPORTED_CURRENCIES = {
    "AUD", "BRL", "CAD", "CNY", "CZK", "DKK", "EUR", "HKD", "HUF", "ILS",
    "JPY", "MYR", "MXN", "TWD", "NZD", "NOK", "PHP", "PLN", "GBP", "SGD",
    "SEK", "CHF", "THB", "USD",
}  # fmt: skip

# PayPal rejects decimals for these
ZERO_DECIMAL_CURRENCIES = {"HUF", "JPY", "TWD"}

APPROVAL_LINK_RELS = ("approve", "payer-action")


@dataclass(frozen=True)
class CheckoutDefaults:
    """Merchant-level defaults applied to every order."""

    brand_name: str
    return_url: str
    cancel_url: str
    currency: str = "USD"
    country_code: str = "US"
    locale: str = "en-US"
    landing_page: str = "NO_PREFERENCE"


@dataclass(frozen=True)
class AmountBreakdown:
    total: Decimal
    item_total: Optional[Decimal] = None
    tax: Decimal = Decimal("0")
    handling: Decimal = Decimal("0")
    insurance: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    shipping_discount: Decimal = Decimal("0")


def quantize(value: Any, currency: str = "USD") -> Decimal:
    """Round half-up to the currency's precision (2 dp, 0 for JPY/HUF/TWD)."""
    exponent = Decimal("1") if currency in ZERO_DECIMAL_CURRENCIES else Decimal("0.01")
    try:
        return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise OrderValidationError(f"Invalid amount: {value!r}") from e


def format_money(value: Any, currency: str = "USD") -> str:
    return str(quantize(value, currency))


def money(value: Any, currency: str) -> dict[str, str]:
    return {"currency_code": currency, "value": format_money(value, currency)}


def normalize_currency(currency: Optional[str], default: str = "USD") -> str:
    code = (currency or default).strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise OrderValidationError(f"Currency must be a 3-letter ISO code: {currency!r}")
    if code not in SUPPORTED_CURRENCIES:
        raise OrderValidationError(f"Currency {code} is not supported by PayPal")
    return code


def normalize_card_expiry(expiry: str) -> str:
    """
    Convert a card expiry typed as ``MM/YY`` (or ``MM/YYYY``) into PayPal's ``YYYY-MM``.

    ``"07/25"`` becomes ``"2025-07"`` and ``"1/26"`` becomes ``"2026-01"``.
    """
    parts = [part.strip() for part in (expiry or "").split("/")]
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise OrderValidationError(f"Card expiry must look like MM/YY: {expiry!r}")

    month, year = int(parts[0]), parts[1]
    if not 1 <= month <= 12:
        raise OrderValidationError(f"Card expiry month out of range: {expiry!r}")
    if len(year) == 2:
        year = f"20{year}"
    elif len(year) != 4:
        raise OrderValidationError(f"Card expiry year must be YY or YYYY: {expiry!r}")
    return f"{year}-{month:02d}"


def compute_breakdown(request: OrderRequest, currency: str) -> AmountBreakdown:
    """
    Work out the authoritative order total.

    With items, each line is the unit price as sent to PayPal (rounded to the
    currency) times its quantity, so ``item_total`` always equals the sum of the
    item lines. The total adds tax, handling, insurance and shipping and subtracts
    both discounts; a caller-supplied amount must agree with it. Without items,
    the caller's amount is the total.
    """
    components = {
        name: quantize(getattr(request, name), currency)
        for name in (
            "tax",
            "handling",
            "insurance",
            "shipping",
            "discount",
            "shipping_discount",
        )
    }
    for name, value in components.items():
        if value < 0:
            raise OrderValidationError(f"{name} cannot be negative")

    extras = (
        components["tax"]
        + components["handling"]
        + components["insurance"]
        + components["shipping"]
        - components["discount"]
        - components["shipping_discount"]
    )

    if request.items:
        item_total = sum(
            (
                quantize(item.unit_amount, currency) * item.quantity
                for item in request.items
            ),
            Decimal("0"),
        )
        total = quantize(item_total + extras, currency)
        if request.amount is not None and quantize(request.amount, currency) != total:
            raise OrderValidationError(
                f"Amount {format_money(request.amount, currency)} does not match "
                f"item total {format_money(total, currency)}"
            )
    else:
        if request.amount is None:
            raise OrderValidationError("Amount is required")
        total = quantize(request.amount, currency)
        item_total = quantize(total - extras, currency) if extras else None

    if total <= 0:
        raise OrderValidationError("Amount must be a positive number")
    if item_total is not None and item_total < 0:
        raise OrderValidationError("Breakdown components exceed the order amount")

    return AmountBreakdown(total=total, item_total=item_total, **components)


def build_amount(breakdown: AmountBreakdown, currency: str) -> dict[str, Any]:
    amount: dict[str, Any] = money(breakdown.total, currency)
    if breakdown.item_total is None:
        return amount

    parts = {"item_total": money(breakdown.item_total, currency)}
    for key, value in (
        ("shipping", breakdown.shipping),
        ("handling", breakdown.handling),
        ("tax_total", breakdown.tax),
        ("insurance", breakdown.insurance),
        ("shipping_discount", breakdown.shipping_discount),
        ("discount", breakdown.discount),
    ):
        if value:
            parts[key] = money(value, currency)
    amount["breakdown"] = parts
    return amount


def build_items(request: OrderRequest, currency: str) -> list[dict[str, Any]]:
    items = []
    for item in request.items:
        if quantize(item.unit_amount, currency) <= 0:
            raise OrderValidationError(f"Item {item.name!r} must have a positive price")
        entry: dict[str, Any] = {
            "name": item.name,
            "quantity": str(item.quantity),
            "unit_amount": money(item.unit_amount, currency),
        }
        for optional in ("sku", "description", "category"):
            value = getattr(item, optional)
            if value:
                entry[optional] = value
        items.append(entry)
    return items


def build_address(address: Optional[Address], default_country: str) -> dict[str, str]:
    """PayPal address block; absent fields are omitted and the country defaults."""
    fields = address.model_dump(exclude_none=True) if address else {}
    fields = {key: value for key, value in fields.items() if value}
    fields.setdefault("country_code", default_country)
    fields["country_code"] = fields["country_code"].upper()
    return fields


def build_purchase_unit(
    request: OrderRequest, currency: str, defaults: CheckoutDefaults
) -> dict[str, Any]:
    breakdown = compute_breakdown(request, currency)
    unit: dict[str, Any] = {"amount": build_amount(breakdown, currency)}
    if request.description:
        unit["description"] = request.description
    if request.items:
        unit["items"] = build_items(request, currency)
    for optional in ("reference_id", "custom_id", "invoice_id", "soft_descriptor"):
        value = getattr(request, optional)
        if value:
            unit[optional] = value

    shipping = request.shipping_details
    if shipping and shipping.address:
        unit["shipping"] = {
            "address": build_address(shipping.address, defaults.country_code)
        }
        if shipping.full_name:
            unit["shipping"]["name"] = {"full_name": shipping.full_name}
    return unit


def paypal_source(request: OrderRequest, defaults: CheckoutDefaults) -> dict[str, Any]:
    has_shipping = bool(request.shipping_details and request.shipping_details.address)
    source: dict[str, Any] = {
        "experience_context": {
            "payment_method_preference": "IMMEDIATE_PAYMENT_REQUIRED",
            "brand_name": defaults.brand_name,
            "locale": defaults.locale,
            "landing_page": defaults.landing_page,
            "shipping_preference": (
                "SET_PROVIDED_ADDRESS" if has_shipping else "NO_SHIPPING"
            ),
            "user_action": "PAY_NOW",
            "return_url": request.return_url or defaults.return_url,
            "cancel_url": request.cancel_url or defaults.cancel_url,
        }
    }
    customer = request.customer
    if customer:
        if customer.email:
            source["email_address"] = customer.email
        if customer.given_name or customer.surname:
            source["name"] = {
                key: value
                for key, value in (
                    ("given_name", customer.given_name),
                    ("surname", customer.surname),
                )
                if value
            }
    return {"paypal": source}


def card_source(request: OrderRequest, defaults: CheckoutDefaults) -> dict[str, Any]:
    card = request.card
    if card is None:
        raise OrderValidationError("Card details are required for card payments")

    number = "".join(card.number.split()).replace("-", "")
    if not number.isdigit() or not 12 <= len(number) <= 19:
        raise OrderValidationError("Card number must contain 12 to 19 digits")
    if not card.cvc:
        raise OrderValidationError("Card security code is required")

    source: dict[str, Any] = {
        "number": number,
        "expiry": normalize_card_expiry(card.expiry),
        "security_code": card.cvc,
        "billing_address": build_address(card.billing_address, defaults.country_code),
    }
    if card.name:
        source["name"] = card.name
    return {"card": source}


def token_source(request: OrderRequest) -> dict[str, Any]:
    if not request.vault_id:
        raise OrderValidationError("vault_id is required for vaulted-token payments")
    return {"token": {"id": request.vault_id, "type": "PAYMENT_METHOD_TOKEN"}}


def build_payment_source(
    request: OrderRequest, defaults: CheckoutDefaults
) -> dict[str, Any]:
    if request.payment_source == PaymentSourceKind.card:
        return card_source(request, defaults)
    if request.payment_source == PaymentSourceKind.vaulted_token:
        return token_source(request)
    return paypal_source(request, defaults)


def build_order_payload(
    request: OrderRequest, defaults: CheckoutDefaults
) -> dict[str, Any]:
    """Build the ``POST /v2/checkout/orders`` body for an immediate-capture order."""
    currency = normalize_currency(request.currency, defaults.currency)
    return {
        "intent": "CAPTURE",
        "purchase_units": [build_purchase_unit(request, currency, defaults)],
        "payment_source": build_payment_source(request, defaults),
    }


def extract_approval_url(order: dict[str, Any]) -> Optional[str]:
    links = {link.get("rel"): link.get("href") for link in order.get("links") or []}
    for rel in APPROVAL_LINK_RELS:
        if links.get(rel):
            return links[rel]
    return None


def first_capture(order: dict[str, Any]) -> Optional[dict[str, Any]]:
    units = order.get("purchase_units") or []
    if not units:
        return None
    captures = (units[0].get("payments") or {}).get("captures") or []
    return captures[0] if captures else None


def payer_identity(order: dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
    payer = order.get("payer") or ((order.get("payment_source") or {}).get("paypal")) or {}
    name = payer.get("name") or {}
    full_name = " ".join(
        part for part in (name.get("given_name"), name.get("surname")) if part
    )
    return payer.get("email_address"), full_name or None


def capture_from_record(
    capture: dict[str, Any],
    *,
    order_id: Optional[str] = None,
    order_status: Optional[str] = None,
    payer: tuple[Optional[str], Optional[str]] = (None, None),
    raw: Optional[dict[str, Any]] = None,
) -> CaptureResult:
    amount = capture.get("amount") or {}
    receivable = capture.get("seller_receivable_breakdown") or {}
    related = (capture.get("supplementary_data") or {}).get("related_ids") or {}
    return CaptureResult(
        status=capture.get("status") or order_status or "UNKNOWN",
        order_id=order_id or related.get("order_id"),
        capture_id=capture.get("id"),
        amount=amount.get("value"),
        currency=amount.get("currency_code"),
        fee=(receivable.get("paypal_fee") or {}).get("value"),
        net_amount=(receivable.get("net_amount") or {}).get("value"),
        payer_email=payer[0],
        payer_name=payer[1],
        order_status=order_status,
        raw=raw if raw is not None else capture,
    )


def capture_result_from_order(order: dict[str, Any]) -> CaptureResult:
    """
    Normalize the order representation returned by an order capture.

    A ``COMPLETED`` order yields its first capture record; any other status is
    reported as-is so the caller can decide what to do with it.
    """
    status = order.get("status") or "UNKNOWN"
    capture = first_capture(order)
    payer = payer_identity(order)
    if status == "COMPLETED" and capture:
        return capture_from_record(
            capture, order_id=order.get("id"), order_status=status, payer=payer, raw=order
        )
    return CaptureResult(
        status=status,
        order_id=order.get("id"),
        capture_id=capture.get("id") if capture else None,
        payer_email=payer[0],
        payer_name=payer[1],
        order_status=status,
        raw=order,
    )


def refund_result(payload: dict[str, Any], capture_id: str) -> RefundResult:
    amount = payload.get("amount") or {}
    return RefundResult(
        status=payload.get("status") or "UNKNOWN",
        capture_id=capture_id,
        refund_id=payload.get("id"),
        amount=amount.get("value"),
        currency=amount.get("currency_code"),
        raw=payload,
    )
