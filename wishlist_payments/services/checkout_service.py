import logging
from urllib.parse import urlsplit

from wishlist_payments.core.unit_of_work import UnitOfWork
from wishlist_payments.models.order import Order
from wishlist_payments.schemas.order import (
    CheckoutRequest,
    OrderStatus,
    PaymentProvider,
    PaymentStatus,
)

logger = logging.getLogger(__name__)


def resolve_origin(origin: str | None, referer: str | None, fallback: str) -> str:
    if origin:
        return origin.rstrip("/")
    if referer:
        parts = urlsplit(referer)
        if parts.scheme and parts.netloc:
            return f"{parts.scheme}://{parts.netloc}"
    return fallback.rstrip("/")


class CheckoutService:
    """Creates the pending order a payment will later be reconciled against."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def create_pending_order(
        self,
        request: CheckoutRequest,
        provider: PaymentProvider,
    ) -> Order:
        order = await self.uow.orders.create(
            user_id=request.user_id,
            total_amount=request.total_amount,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=provider.value,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
        )

        await self.uow.order_items.create_many(
            [
                {
                    "order_id": order.id,
                    "position": position,
                    "product_id": item.product_id,
                    "animal_id": item.animal_id,
                    "quantity": item.quantity,
                    "unit_price": item.price,
                }
                for position, item in enumerate(request.items)
            ]
        )
        await self.uow.commit()

        logger.info("Order created: %s (%s, %s items)", order.id, provider.value, len(request.items))
        return order
