"""
Notification signature verification for both gateways.

HotPay (concatenated-fields digest):
  create  HASH = sha256(HASLO;KWOTA;NAZWA_USLUGI;ADRES_WWW;ID_ZAMOWIENIA;SEKRET)
  notify  HASH = sha256(HASLO;KWOTA;ID_PLATNOSCI;ID_ZAMOWIENIA;STATUS;SECURE;SEKRET)

PayU (header-carried digest):
  OpenPayu-Signature: sender=checkout;signature=<hex>;algorithm=MD5;content=DOCUMENT
  signature = <algorithm>(raw_body + second_key)
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from abc import ABC, abstractmethod

from wishlist_payments.schemas.hotpay import HotPayNotification
from wishlist_payments.schemas.payu import PayUSignatureHeader

logger = logging.getLogger(__name__)

HOTPAY_FIELD_SEPARATOR = ";"

# OpenPayu-Signature algorithm names → hashlib names
PAYU_ALGORITHMS = {
    "MD5": "md5",
    "SHA1": "sha1",
    "SHA-1": "sha1",
    "SHA256": "sha256",
    "SHA-256": "sha256",
}


def _digests_match(received: str, expected: str) -> bool:
    return hmac.compare_digest(received.strip().lower(), expected.lower())


class SignatureVerifier(ABC):
    """Proves a notification came from the configured gateway."""

    @abstractmethod
    def verify(self, *args, **kwargs) -> bool:
        raise NotImplementedError


class HotPaySignatureVerifier(SignatureVerifier):
    def __init__(self, haslo: str, sekret: str):
        self._haslo = haslo
        self._sekret = sekret

    def _digest(self, *fields: str) -> str:
        message = HOTPAY_FIELD_SEPARATOR.join(
            [self._haslo, *fields, self._sekret]
        )
        return hashlib.sha256(message.encode("utf-8")).hexdigest()

    def payment_hash(self, kwota: str, nazwa_uslugi: str, adres_www: str, id_zamowienia: str) -> str:
        """Hash HotPay expects on an outbound payment form."""
        return self._digest(kwota, nazwa_uslugi, adres_www, id_zamowienia)

    def notification_hash(self, notification: HotPayNotification) -> str:
        return self._digest(
            notification.amount,
            notification.payment_id,
            notification.order_id,
            notification.status,
            notification.secure,
        )

    def verify(self, notification: HotPayNotification) -> bool:
        if not notification.hash:
            return False

        expected = self.notification_hash(notification)
        logger.debug(
            "HotPay hash check for order %s: received=%s expected=%s",
            notification.order_id,
            notification.hash[:16],
            expected[:16],
        )
        return _digests_match(notification.hash, expected)


def parse_signature_header(raw: str | None) -> PayUSignatureHeader:
    """Parse ``key=value;key=value`` tolerating blanks, spacing and key case."""
    parts: dict[str, str] = {}
    for segment in (raw or "").split(";"):
        key, sep, value = segment.partition("=")
        if not sep:
            continue
        key = key.strip().lower()
        value = value.strip()
        if key and value:
            parts[key] = value
    return PayUSignatureHeader(**parts)


class PayUSignatureVerifier(SignatureVerifier):
    def __init__(self, second_key: str):
        self._second_key = second_key

    def expected_signature(self, raw_body: bytes, algorithm: str) -> str | None:
        hash_name = PAYU_ALGORITHMS.get(algorithm.strip().upper())
        if hash_name is None:
            return None
        digest = hashlib.new(hash_name)
        digest.update(raw_body)
        digest.update(self._second_key.encode("utf-8"))
        return digest.hexdigest()

    def verify(self, raw_body: bytes, header: PayUSignatureHeader) -> bool:
        if not header.signature:
            return False

        algorithm = header.algorithm or "MD5"
        expected = self.expected_signature(raw_body, algorithm)
        if expected is None:
            logger.error("Unsupported PayU signature algorithm: %s", algorithm)
            return False

        return _digests_match(header.signature, expected)
