import logging

from sqlalchemy.exc import IntegrityError

from wishlist_payments.core.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class BatchAssignmentService:
    """Attaches a paid order to its organization's collecting shipment batch."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def find_or_create_collecting(self, organization_id: str) -> str:
        existing = await self.uow.batches.get_collecting(organization_id)
        if existing is not None:
            logger.info("Using existing batch order: %s", existing.id)
            return existing.id

        try:
            batch = await self.uow.batches.create_collecting(organization_id)
            await self.uow.commit()
            logger.info("Created new batch order: %s", batch.id)
            return batch.id
        except IntegrityError:
            # Another delivery created it between our read and insert.
            await self.uow.rollback()
            logger.info(
                "Concurrent collecting batch insert detected for organization: %s",
                organization_id,
            )

        existing = await self.uow.batches.get_collecting(organization_id)
        if existing is None:
            raise RuntimeError(
                f"Collecting batch for organization {organization_id} vanished after conflict"
            )
        return existing.id

    async def assign(self, order_id: str) -> str | None:
        # Orders spanning several organizations go to the first one found;
        # splitting them is not supported.
        organization_id = await self.uow.order_items.first_organization_id(order_id)
        if organization_id is None:
            logger.info("No organization found for order %s, skipping batch assignment", order_id)
            return None

        batch_order_id = await self.find_or_create_collecting(organization_id)

        await self.uow.orders.assign_batch(order_id, batch_order_id)
        await self.uow.commit()
        logger.info("Order %s assigned to batch: %s", order_id, batch_order_id)
        return batch_order_id
