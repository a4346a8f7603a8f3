"""
HotPay gateway adapter.

Turns a raw HotPay form into a verified PaymentNotification and builds
the signed form the browser submits to start a payment.
"""

import logging
from decimal import Decimal, InvalidOperation

from pydantic import ValidationError

from wishlist_payments.core.config import Settings
from wishlist_payments.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    MalformedPayloadError,
)
from wishlist_payments.schemas.hotpay import HotPayNotification, HotPayPaymentParams
from wishlist_payments.schemas.order import PaymentNotification, PaymentProvider
from wishlist_payments.services.signature import HotPaySignatureVerifier
from wishlist_payments.services.status_mapper import map_hotpay_status

logger = logging.getLogger(__name__)

# HotPay notification source addresses, logged for reference only
HOTPAY_NOTIFY_IPS = frozenset(
    {
        "18.197.55.26",
        "3.126.108.86",
        "3.64.128.101",
        "18.184.99.42",
        "3.72.152.155",
        "35.159.7.168",
    }
)

SERVICE_NAME_PREFIX = "Zamówienie"


def format_amount(amount: Decimal) -> str:
    """HotPay expects a dot-separated two-decimal amount, e.g. "19.99"."""
    return f"{Decimal(amount).quantize(Decimal('0.01'))}"


def parse_amount(raw: str | None) -> Decimal | None:
    if not raw:
        return None
    try:
        return Decimal(raw.replace(",", "."))
    except InvalidOperation:
        logger.warning("Unparseable HotPay amount: %r", raw)
        return None


class HotPayService:
    def __init__(self, settings: Settings):
        self.sekret = settings.HOTPAY_SEKRET
        self.haslo = settings.HOTPAY_HASLO
        self.payment_url = settings.HOTPAY_PAYMENT_URL
        self.require_signature = settings.HOTPAY_REQUIRE_SIGNATURE
        self.verifier = HotPaySignatureVerifier(haslo=self.haslo, sekret=self.sekret)

    def ensure_configured(self) -> None:
        if not self.sekret or not self.haslo:
            logger.error("SECURITY: HotPay credentials not configured")
            raise ConfigurationError("Payment gateway not configured", details={"provider": "hotpay"})

    def parse_notification(self, fields: dict[str, str]) -> HotPayNotification:
        try:
            notification = HotPayNotification.model_validate(fields)
        except ValidationError as exc:
            logger.error("Missing required fields in HotPay notification: %s", sorted(fields))
            raise MalformedPayloadError("Missing required fields") from exc

        if self.require_signature and not notification.hash:
            logger.error("Missing HASH in HotPay notification for order %s", notification.order_id)
            raise MalformedPayloadError("Missing required fields")
        return notification

    def verify(self, notification: HotPayNotification) -> None:
        if not notification.hash:
            logger.warning(
                "HotPay notification for order %s carries no HASH, processing unverified",
                notification.order_id,
            )
            return

        if not self.verifier.verify(notification):
            logger.error(
                "SECURITY: Hash mismatch for order %s - rejecting notification",
                notification.order_id,
            )
            raise AuthenticationError("Invalid hash", details={"order_id": notification.order_id})

        logger.info("Hash verified for order %s", notification.order_id)

    def to_payment_notification(self, notification: HotPayNotification) -> PaymentNotification:
        mapped = map_hotpay_status(notification.status)
        return PaymentNotification(
            provider=PaymentProvider.HOTPAY,
            order_id=notification.order_id,
            gateway_status=notification.status,
            payment_status=mapped.payment_status,
            order_status=mapped.order_status,
            amount=parse_amount(notification.amount),
            transaction_id=notification.payment_id or None,
        )

    def handle_notification(self, fields: dict[str, str], client_ip: str | None = None) -> PaymentNotification:
        self.ensure_configured()
        logger.info(
            "HotPay notification from %s (known HotPay IP: %s)",
            client_ip or "unknown",
            client_ip in HOTPAY_NOTIFY_IPS,
        )
        notification = self.parse_notification(fields)
        self.verify(notification)
        return self.to_payment_notification(notification)

    def build_payment_params(
        self,
        order_id: str,
        total_amount: Decimal,
        customer_email: str,
        customer_name: str,
        origin: str,
    ) -> HotPayPaymentParams:
        self.ensure_configured()

        kwota = format_amount(total_amount)
        nazwa_uslugi = f"{SERVICE_NAME_PREFIX} {order_id[:8]}"
        adres_www = f"{origin.rstrip('/')}/payment-success?extOrderId={order_id}"

        payment_hash = self.verifier.payment_hash(
            kwota=kwota,
            nazwa_uslugi=nazwa_uslugi,
            adres_www=adres_www,
            id_zamowienia=order_id,
        )
        logger.info("HotPay payment prepared for order %s (amount %s)", order_id, kwota)

        return HotPayPaymentParams(
            sekret=self.sekret,
            kwota=kwota,
            nazwa_uslugi=nazwa_uslugi,
            adres_www=adres_www,
            id_zamowienia=order_id,
            email=customer_email,
            dane_osobowe=customer_name,
            hash=payment_hash,
        )
