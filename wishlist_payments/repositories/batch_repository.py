from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wishlist_payments.models.batch import ShipmentBatch
from wishlist_payments.schemas.order import BatchStatus


class BatchRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_collecting(self, organization_id: str) -> ShipmentBatch | None:
        result = await self.session.execute(
            select(ShipmentBatch).where(
                ShipmentBatch.organization_id == organization_id,
                ShipmentBatch.status == BatchStatus.COLLECTING.value,
            )
        )
        return result.scalar_one_or_none()

    async def create_collecting(self, organization_id: str) -> ShipmentBatch:
        batch = ShipmentBatch(
            organization_id=organization_id,
            status=BatchStatus.COLLECTING.value,
        )
        self.session.add(batch)
        await self.session.flush()
        return batch
