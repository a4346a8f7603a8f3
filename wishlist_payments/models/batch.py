from sqlalchemy import Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from wishlist_payments.models.base import Base, TimestampMixin, generate_prefixed_id
from wishlist_payments.schemas.order import BatchStatus


def generate_batch_id() -> str:
    return generate_prefixed_id("batch")


class ShipmentBatch(TimestampMixin, Base):
    __tablename__ = "organization_batch_orders"

    # One collecting batch per organization; later states are unrestricted.
    __table_args__ = (
        Index(
            "uq_batch_collecting_per_organization",
            "organization_id",
            unique=True,
            postgresql_where=text("status = 'collecting'"),
            sqlite_where=text("status = 'collecting'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True, default=generate_batch_id)
    organization_id: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BatchStatus.COLLECTING.value
    )

    def __repr__(self) -> str:
        return f"<ShipmentBatch {self.id} {self.organization_id}:{self.status}>"
