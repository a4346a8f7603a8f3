import logging

import httpx

from wishlist_payments.core.config import Settings
from wishlist_payments.core.exceptions import SideEffectError
from wishlist_payments.core.unit_of_work import UnitOfWork
from wishlist_payments.models.order import Order
from wishlist_payments.schemas.order import (
    ConfirmationAnimal,
    ConfirmationItem,
    ConfirmationProduct,
    OrderConfirmation,
)

logger = logging.getLogger(__name__)


def build_confirmation(
    order: Order,
    customer_email: str,
    customer_name: str,
) -> OrderConfirmation:
    items = [
        ConfirmationItem(
            products=ConfirmationProduct(
                name=item.product.name,
                price=float(item.product.price),
            ),
            animals=ConfirmationAnimal(name=item.animal.name) if item.animal else None,
            quantity=item.quantity,
            unit_price=float(item.unit_price),
        )
        for item in order.items
    ]
    return OrderConfirmation(
        order_id=order.id,
        customer_email=customer_email,
        customer_name=customer_name,
        total_amount=float(order.total_amount),
        items=items,
    )


class NotificationDispatcher:
    """Asks the e-mail collaborator to send the order confirmation."""

    def __init__(
        self,
        settings: Settings,
        uow: UnitOfWork,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = settings.ORDER_CONFIRMATION_URL
        self.token = settings.EMAIL_SERVICE_TOKEN
        self.timeout = settings.EMAIL_TIMEOUT_SECONDS
        self.default_name = settings.DEFAULT_CUSTOMER_NAME
        self.uow = uow
        self._transport = transport

    async def dispatch(
        self,
        order_id: str,
        buyer_email: str | None = None,
        buyer_name: str | None = None,
    ) -> bool:
        if not self.url:
            logger.info("ORDER_CONFIRMATION_URL not set, skipping confirmation for %s", order_id)
            return False

        order = await self.uow.orders.get_with_items(order_id)
        if order is None:
            raise SideEffectError(
                "Order disappeared before confirmation", details={"order_id": order_id}
            )

        customer_email = order.customer_email or buyer_email
        if not customer_email:
            logger.info("No customer e-mail for order %s, skipping confirmation", order_id)
            return False
        customer_name = order.customer_name or buyer_name or self.default_name

        payload = build_confirmation(order, customer_email, customer_name)
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    json=payload.model_dump(mode="json", by_alias=True),
                    headers=headers,
                    timeout=self.timeout,
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise SideEffectError(
                f"Confirmation e-mail request failed: {e}",
                details={"order_id": order_id},
            ) from e

        logger.info("Confirmation e-mail requested for order %s", order_id)
        return True
