from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from wishlist_payments.models.order import Animal, Order, OrderItem
from wishlist_payments.schemas.order import OrderStatus, PaymentStatus


class OrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, order_id: str) -> Order | None:
        result = await self.session.execute(select(Order).where(Order.id == order_id))
        return result.scalar_one_or_none()

    async def get_with_items(self, order_id: str) -> Order | None:
        result = await self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .options(
                selectinload(Order.items).selectinload(OrderItem.product),
                selectinload(Order.items).selectinload(OrderItem.animal),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_statuses(self, order_id: str) -> tuple[PaymentStatus, OrderStatus] | None:
        """Current status pair read straight from the table, bypassing the identity map."""
        result = await self.session.execute(
            select(Order.payment_status, Order.status).where(Order.id == order_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return PaymentStatus(row.payment_status), OrderStatus(row.status)

    async def create(self, **fields) -> Order:
        order = Order(**fields)
        self.session.add(order)
        await self.session.flush()
        return order

    async def apply_status_if_pending(
        self,
        order_id: str,
        payment_status: PaymentStatus,
        order_status: OrderStatus,
    ) -> bool:
        """Move a pending order to a terminal state in one statement.

        Returns False when the order is no longer pending, which is how
        concurrent or repeated deliveries lose the race.
        """
        result = await self.session.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.payment_status == PaymentStatus.PENDING.value,
            )
            .values(
                payment_status=payment_status.value,
                status=order_status.value,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def assign_batch(self, order_id: str, batch_order_id: str) -> None:
        await self.session.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(batch_order_id=batch_order_id, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )


class OrderItemRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_many(self, items: list[dict]) -> list[OrderItem]:
        rows = [OrderItem(**item) for item in items]
        self.session.add_all(rows)
        await self.session.flush()
        return rows

    async def first_organization_id(self, order_id: str) -> str | None:
        # First line item whose animal belongs to an organization wins.
        result = await self.session.execute(
            select(Animal.organization_id)
            .join(OrderItem, OrderItem.animal_id == Animal.id)
            .where(
                OrderItem.order_id == order_id,
                Animal.organization_id.is_not(None),
            )
            .order_by(OrderItem.position)
            .limit(1)
        )
        return result.scalar_one_or_none()
