import asyncio

import pytest

from wishlist_payments.core.unit_of_work import UnitOfWork
from wishlist_payments.models import ShipmentBatch
from wishlist_payments.repositories.batch_repository import BatchRepository
from wishlist_payments.schemas.order import BatchStatus
from wishlist_payments.services.batch_service import BatchAssignmentService

from tests.factories import collecting_batches, create_order, load_order

pytestmark = [pytest.mark.asyncio]


async def assign(session_factory, order_id):
    async with UnitOfWork(session_factory) as uow:
        return await BatchAssignmentService(uow).assign(order_id)


async def test_creates_collecting_batch_when_none_exists(session_factory):
    order = await create_order(session_factory, organization_ids=["org-1"])

    batch_id = await assign(session_factory, order.id)

    batches = await collecting_batches(session_factory, "org-1")
    assert [b.id for b in batches] == [batch_id]
    assert (await load_order(session_factory, order.id)).batch_order_id == batch_id


async def test_reuses_existing_collecting_batch(session_factory):
    first = await create_order(session_factory, organization_ids=["org-1"])
    second = await create_order(session_factory, organization_ids=["org-1"])

    assert await assign(session_factory, first.id) == await assign(session_factory, second.id)
    assert len(await collecting_batches(session_factory, "org-1")) == 1


async def test_ignores_batches_past_collecting(session_factory):
    async with session_factory() as session:
        session.add(ShipmentBatch(organization_id="org-1", status=BatchStatus.SHIPPED.value))
        await session.commit()
    order = await create_order(session_factory, organization_ids=["org-1"])

    batch_id = await assign(session_factory, order.id)

    batches = await collecting_batches(session_factory, "org-1")
    assert [b.id for b in batches] == [batch_id]


async def test_organizations_get_separate_batches(session_factory):
    a = await create_order(session_factory, organization_ids=["org-a"])
    b = await create_order(session_factory, organization_ids=["org-b"])

    assert await assign(session_factory, a.id) != await assign(session_factory, b.id)


async def test_first_item_with_an_organization_wins(session_factory):
    order = await create_order(session_factory, organization_ids=[None, "org-2", "org-3"])

    batch_id = await assign(session_factory, order.id)

    assert [b.id for b in await collecting_batches(session_factory, "org-2")] == [batch_id]
    assert await collecting_batches(session_factory, "org-3") == []


async def test_order_without_animals_is_skipped(session_factory):
    order = await create_order(session_factory, organization_ids=[None])

    assert await assign(session_factory, order.id) is None
    assert (await load_order(session_factory, order.id)).batch_order_id is None


async def test_concurrent_orders_share_one_batch(session_factory):
    orders = [await create_order(session_factory, organization_ids=["org-1"]) for _ in range(3)]

    batch_ids = await asyncio.gather(*(assign(session_factory, o.id) for o in orders))

    assert len(set(batch_ids)) == 1
    assert len(await collecting_batches(session_factory, "org-1")) == 1


async def test_lost_insert_race_falls_back_to_winner(session_factory, monkeypatch):
    order = await create_order(session_factory, organization_ids=["org-1"])
    async with session_factory() as session:
        winner = ShipmentBatch(organization_id="org-1", status=BatchStatus.COLLECTING.value)
        session.add(winner)
        await session.commit()

    real_get_collecting = BatchRepository.get_collecting
    calls = {"n": 0}

    async def stale_first_read(self, organization_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await real_get_collecting(self, organization_id)

    monkeypatch.setattr(BatchRepository, "get_collecting", stale_first_read)

    batch_id = await assign(session_factory, order.id)

    assert batch_id == winner.id
    assert len(await collecting_batches(session_factory, "org-1")) == 1
    assert (await load_order(session_factory, order.id)).batch_order_id == winner.id
