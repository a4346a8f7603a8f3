from wishlist_payments.models.base import Base, TimestampMixin
from wishlist_payments.models.batch import ShipmentBatch
from wishlist_payments.models.order import Animal, Order, OrderItem, Product

__all__ = [
    "Base",
    "TimestampMixin",
    "Animal",
    "Order",
    "OrderItem",
    "Product",
    "ShipmentBatch",
]
