"""
Pydantic models for the PayU gateway (REST API v2.1).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from wishlist_payments.schemas.order import CamelModel


class PayUBuyer(CamelModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class PayUOrderNotification(CamelModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, coerce_numbers_to_str=True)

    ext_order_id: str = Field(min_length=1)
    status: str = Field(min_length=1)
    order_id: str | None = None
    total_amount: str | None = None
    currency_code: str | None = None
    buyer: PayUBuyer | None = None


class PayUNotification(BaseModel):
    model_config = ConfigDict(extra="ignore")

    order: PayUOrderNotification


class PayUSignatureHeader(BaseModel):
    """Parsed ``OpenPayu-Signature`` header."""

    signature: str | None = None
    algorithm: str | None = None
    sender: str | None = None
    content: str | None = None


# ──────────────────────────────────────────────────────────────────────
#  Outbound order creation – POST {PAYU_API_URL}/api/v2_1/orders
# ──────────────────────────────────────────────────────────────────────


class PayUProduct(CamelModel):
    name: str
    unit_price: str
    quantity: str


class PayUOrderCreateRequest(CamelModel):
    notify_url: str
    continue_url: str
    customer_ip: str
    merchant_pos_id: str
    description: str
    currency_code: str
    total_amount: str
    buyer: PayUBuyer
    products: list[PayUProduct]
    ext_order_id: str


class PayUCheckoutResponse(CamelModel):
    order_id: str
    redirect_uri: str | None = None
    status: dict[str, Any] | None = None
