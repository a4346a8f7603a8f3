import hashlib
from decimal import Decimal

from sqlalchemy import select

from wishlist_payments.models import Animal, Order, OrderItem, Product, ShipmentBatch
from wishlist_payments.schemas.order import PaymentStatus

HOTPAY_HASLO = "hotpay-haslo"
HOTPAY_SEKRET = "hotpay-sekret"
PAYU_SECOND_KEY = "payu-second-key"


async def create_product(session_factory, name: str = "Karma dla psa 10kg", price: str = "50.00") -> Product:
    async with session_factory() as session:
        product = Product(name=name, price=Decimal(price))
        session.add(product)
        await session.commit()
        return product


async def create_animal(session_factory, organization_id: str | None, name: str = "Burek") -> Animal:
    async with session_factory() as session:
        animal = Animal(name=name, organization_id=organization_id)
        session.add(animal)
        await session.commit()
        return animal


async def create_order(
    session_factory,
    total: str = "100.00",
    organization_ids: list[str | None] | None = None,
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    status: str = "pending",
    customer_email: str | None = "donor@example.com",
    customer_name: str | None = "Anna Kowalska",
    order_id: str | None = None,
) -> Order:
    """Pending order with one item per entry in ``organization_ids``.

    ``None`` entries get an item without an animal.
    """
    product = await create_product(session_factory)
    animals = []
    for organization_id in organization_ids or []:
        animals.append(
            await create_animal(session_factory, organization_id) if organization_id else None
        )

    async with session_factory() as session:
        fields = {}
        if order_id:
            fields["id"] = order_id
        order = Order(
            total_amount=Decimal(total),
            payment_status=payment_status.value,
            status=status,
            customer_email=customer_email,
            customer_name=customer_name,
            **fields,
        )
        session.add(order)
        await session.flush()
        for position, animal in enumerate(animals):
            session.add(
                OrderItem(
                    order_id=order.id,
                    position=position,
                    product_id=product.id,
                    animal_id=animal.id if animal else None,
                    quantity=2,
                    unit_price=Decimal("50.00"),
                )
            )
        await session.commit()
        return order


async def load_order(session_factory, order_id: str) -> Order | None:
    async with session_factory() as session:
        return await session.get(Order, order_id)


async def collecting_batches(session_factory, organization_id: str) -> list[ShipmentBatch]:
    async with session_factory() as session:
        result = await session.execute(
            select(ShipmentBatch).where(
                ShipmentBatch.organization_id == organization_id,
                ShipmentBatch.status == "collecting",
            )
        )
        return list(result.scalars())


def hotpay_notification(
    order_id: str,
    status: str = "SUCCESS",
    kwota: str = "100.00",
    id_platnosci: str = "HP-TX-1",
    secure: str = "secure-token",
    haslo: str = HOTPAY_HASLO,
    sekret: str = HOTPAY_SEKRET,
) -> dict[str, str]:
    message = ";".join([haslo, kwota, id_platnosci, order_id, status, secure, sekret])
    return {
        "SEKRET": sekret,
        "KWOTA": kwota,
        "STATUS": status,
        "ID_ZAMOWIENIA": order_id,
        "ID_PLATNOSCI": id_platnosci,
        "SECURE": secure,
        "HASH": hashlib.sha256(message.encode("utf-8")).hexdigest(),
    }


def payu_signature_header(body: bytes, key: str = PAYU_SECOND_KEY, algorithm: str = "MD5") -> str:
    hash_name = {"MD5": "md5", "SHA-256": "sha256", "SHA256": "sha256"}[algorithm]
    digest = hashlib.new(hash_name, body + key.encode("utf-8")).hexdigest()
    return f"sender=checkout;signature={digest};algorithm={algorithm};content=DOCUMENT"
