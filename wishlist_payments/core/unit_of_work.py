from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wishlist_payments.repositories.batch_repository import BatchRepository
from wishlist_payments.repositories.order_repository import OrderItemRepository, OrderRepository


class UnitOfWork:
    """
    Owns one AsyncSession and the repositories bound to it.

        async with UnitOfWork(session_factory) as uow:
            order = await uow.orders.get_by_id(order_id)
            ...
            await uow.commit()

    Nothing is committed implicitly; leaving the block with an exception
    rolls back whatever is still pending.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self.session: AsyncSession | None = None

    async def __aenter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self.orders = OrderRepository(self.session)
        self.order_items = OrderItemRepository(self.session)
        self.batches = BatchRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is not None:
                await self.rollback()
        finally:
            await self.session.close()
            self.session = None
        return False

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
