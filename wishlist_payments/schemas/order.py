from decimal import Decimal
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class BatchStatus(str, Enum):
    COLLECTING = "collecting"
    ORDERED = "ordered"
    SHIPPED = "shipped"
    CONFIRMED = "confirmed"


class PaymentProvider(str, Enum):
    HOTPAY = "hotpay"
    PAYU = "payu"


class StatusMapping(NamedTuple):
    payment_status: PaymentStatus
    order_status: OrderStatus


class PaymentNotification(BaseModel):
    """A verified gateway notification, reduced to what reconciliation needs."""

    provider: PaymentProvider
    order_id: str
    gateway_status: str
    payment_status: PaymentStatus
    order_status: OrderStatus
    amount: Decimal | None = None
    transaction_id: str | None = None
    buyer_email: str | None = None
    buyer_name: str | None = None


class ReconciliationOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    UNCHANGED = "unchanged"


class ReconciliationResult(BaseModel):
    order_id: str
    outcome: ReconciliationOutcome
    payment_status: PaymentStatus
    order_status: OrderStatus
    batch_order_id: str | None = None
    hook_failures: list[str] = Field(default_factory=list)

    @property
    def side_effects_ran(self) -> bool:
        return self.outcome is ReconciliationOutcome.APPLIED and (
            self.payment_status is PaymentStatus.COMPLETED
        )


# ──────────────────────────────────────────────────────────────────────
#  Checkout – POST /api/v1/checkout/{hotpay,payu}
# ──────────────────────────────────────────────────────────────────────


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckoutItem(CamelModel):
    product_id: str
    product_name: str
    price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)
    animal_id: str | None = None
    animal_name: str | None = None


class CheckoutRequest(CamelModel):
    items: list[CheckoutItem] = Field(min_length=1)
    customer_email: str
    customer_name: str
    total_amount: Decimal = Field(gt=0)
    user_id: str | None = None


# ──────────────────────────────────────────────────────────────────────
#  Order confirmation e-mail payload
# ──────────────────────────────────────────────────────────────────────


class ConfirmationProduct(BaseModel):
    name: str
    price: float


class ConfirmationAnimal(BaseModel):
    name: str


class ConfirmationItem(BaseModel):
    products: ConfirmationProduct
    animals: ConfirmationAnimal | None = None
    quantity: int
    unit_price: float


class OrderConfirmation(CamelModel):
    order_id: str
    customer_email: str
    customer_name: str
    total_amount: float
    items: list[ConfirmationItem]
