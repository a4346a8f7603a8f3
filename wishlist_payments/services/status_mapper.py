"""
Gateway status vocabularies → canonical (payment, order) status pair.

Anything not listed maps to pending/pending, so an unexpected status
never moves an order and never raises.
"""

from wishlist_payments.schemas.order import OrderStatus, PaymentProvider, PaymentStatus, StatusMapping

COMPLETED = StatusMapping(PaymentStatus.COMPLETED, OrderStatus.CONFIRMED)
FAILED = StatusMapping(PaymentStatus.FAILED, OrderStatus.CANCELLED)
PENDING = StatusMapping(PaymentStatus.PENDING, OrderStatus.PENDING)

HOTPAY_STATUS_MAP: dict[str, StatusMapping] = {
    "SUCCESS": COMPLETED,
    "FAILURE": FAILED,
    "CANCELLED": FAILED,
    "REJECTED": FAILED,
    "TIMEOUT": PENDING,
    "PENDING": PENDING,
}

PAYU_STATUS_MAP: dict[str, StatusMapping] = {
    "COMPLETED": COMPLETED,
    "CANCELED": FAILED,
    "REJECTED": FAILED,
    "PENDING": PENDING,
    "WAITING_FOR_CONFIRMATION": PENDING,
}

_STATUS_MAPS = {
    PaymentProvider.HOTPAY: HOTPAY_STATUS_MAP,
    PaymentProvider.PAYU: PAYU_STATUS_MAP,
}


def _normalize(gateway_status: object) -> str:
    if not isinstance(gateway_status, str):
        return ""
    return gateway_status.strip().upper()


def map_status(provider: PaymentProvider, gateway_status: str | None) -> StatusMapping:
    return _STATUS_MAPS[provider].get(_normalize(gateway_status), PENDING)


def map_hotpay_status(gateway_status: str | None) -> StatusMapping:
    return map_status(PaymentProvider.HOTPAY, gateway_status)


def map_payu_status(gateway_status: str | None) -> StatusMapping:
    return map_status(PaymentProvider.PAYU, gateway_status)
