"""
PayU gateway adapter.

Handles the PayU REST calls used at checkout (OAuth client-credentials
token, order creation) and turns inbound notifications into verified
PaymentNotification objects.
"""

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

import httpx
from fastapi import status
from pydantic import ValidationError

from wishlist_payments.core.config import Settings
from wishlist_payments.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ExternalServiceError,
    MalformedPayloadError,
)
from wishlist_payments.models.order import Order
from wishlist_payments.schemas.order import CheckoutItem, PaymentNotification, PaymentProvider
from wishlist_payments.schemas.payu import (
    PayUBuyer,
    PayUNotification,
    PayUOrderCreateRequest,
    PayUProduct,
)
from wishlist_payments.services.signature import PayUSignatureVerifier, parse_signature_header
from wishlist_payments.services.status_mapper import map_payu_status

logger = logging.getLogger(__name__)

PAYU_TOKEN_KEY = "payu:access_token"
SIGNATURE_HEADER = "OpenPayu-Signature"


class TokenCache(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


def to_minor_units(amount: Decimal) -> str:
    """PLN → grosze, as PayU wants integer strings."""
    return str(int((Decimal(amount) * 100).quantize(Decimal("1"))))


def split_name(full_name: str) -> tuple[str, str]:
    parts = full_name.split()
    if not parts:
        return full_name, full_name
    first = parts[0]
    last = " ".join(parts[1:]) or full_name
    return first, last


class PayUService:
    def __init__(
        self,
        settings: Settings,
        cache: TokenCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = settings.PAYU_API_URL.rstrip("/")
        self.pos_id = settings.PAYU_POS_ID
        self.client_id = settings.PAYU_CLIENT_ID
        self.client_secret = settings.PAYU_CLIENT_SECRET
        self.second_key = settings.PAYU_SECOND_KEY
        self.notify_url = settings.PAYU_NOTIFY_URL
        self.currency_code = settings.PAYU_CURRENCY_CODE
        self.require_signature = settings.PAYU_REQUIRE_SIGNATURE
        self.token_margin = settings.PAYU_TOKEN_CACHE_MARGIN
        self.configured = settings.payu_configured
        self.cache = cache
        self.verifier = PayUSignatureVerifier(self.second_key)
        self._transport = transport

    # ──────────────────────────────────────────────────────────────
    # Inbound notifications
    # ──────────────────────────────────────────────────────────────

    def verify(self, raw_body: bytes, signature_header: str | None) -> None:
        if not self.second_key:
            if self.require_signature:
                logger.error("SECURITY: PAYU_SECOND_KEY not configured")
                raise ConfigurationError("Payment gateway not configured", details={"provider": "payu"})
            logger.warning("PAYU_SECOND_KEY not configured, processing PayU notification unverified")
            return

        header = parse_signature_header(signature_header)
        if not header.signature:
            if self.require_signature:
                logger.error("SECURITY: PayU notification without %s header", SIGNATURE_HEADER)
                raise AuthenticationError("Missing signature")
            logger.warning("PayU notification without signature, processing unverified")
            return

        if not self.verifier.verify(raw_body, header):
            logger.error(
                "SECURITY: Invalid PayU signature (sender=%s, algorithm=%s, received=%s)",
                header.sender,
                header.algorithm,
                header.signature[:16],
            )
            raise AuthenticationError("Invalid signature")

    def parse_notification(self, raw_body: bytes) -> PayUNotification:
        try:
            return PayUNotification.model_validate(json.loads(raw_body))
        except (ValueError, ValidationError) as exc:
            logger.error("Malformed PayU notification: %s", exc)
            raise MalformedPayloadError("Missing required fields") from exc

    def to_payment_notification(self, notification: PayUNotification) -> PaymentNotification:
        order = notification.order
        mapped = map_payu_status(order.status)

        amount = None
        if order.total_amount:
            try:
                amount = Decimal(order.total_amount) / 100
            except InvalidOperation:
                logger.warning("Unparseable PayU totalAmount: %r", order.total_amount)

        buyer = order.buyer or PayUBuyer()
        return PaymentNotification(
            provider=PaymentProvider.PAYU,
            order_id=order.ext_order_id,
            gateway_status=order.status,
            payment_status=mapped.payment_status,
            order_status=mapped.order_status,
            amount=amount,
            transaction_id=order.order_id,
            buyer_email=buyer.email,
            buyer_name=buyer.first_name,
        )

    def handle_notification(self, raw_body: bytes, signature_header: str | None) -> PaymentNotification:
        self.verify(raw_body, signature_header)
        notification = self.parse_notification(raw_body)
        logger.info(
            "Processing PayU order: %s Status: %s",
            notification.order.ext_order_id,
            notification.order.status,
        )
        return self.to_payment_notification(notification)

    # ──────────────────────────────────────────────────────────────
    # Outbound: OAuth + order creation
    # ──────────────────────────────────────────────────────────────

    def ensure_configured(self) -> None:
        if not self.configured:
            logger.error("PayU credentials not configured")
            raise ConfigurationError("Payment gateway not configured", details={"provider": "payu"})

    async def _get_cached_token(self) -> str | None:
        if self.cache is None:
            return None
        return await self.cache.get(PAYU_TOKEN_KEY)

    async def _cache_token(self, token: str, expires_in: int | None) -> None:
        if self.cache is None or not expires_in:
            return
        ttl = max(int(expires_in) - self.token_margin, 1)
        await self.cache.set(PAYU_TOKEN_KEY, token, ttl=ttl)

    async def _clear_token(self) -> None:
        if self.cache is not None:
            await self.cache.delete(PAYU_TOKEN_KEY)

    async def authenticate(self) -> str:
        cached_token = await self._get_cached_token()
        if cached_token:
            logger.info("Using cached PayU token")
            return cached_token

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    f"{self.api_url}/pl/standard/user/oauth/authorize",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                    },
                    timeout=30.0,
                )
        except httpx.HTTPError as e:
            logger.error("PayU authentication request error: %s", e)
            raise ExternalServiceError("PayU authentication failed") from e

        if response.status_code != status.HTTP_200_OK:
            logger.error("PayU authentication failed: %s", response.status_code)
            raise ExternalServiceError(
                "PayU authentication failed",
                details={"status_code": response.status_code},
            )

        data = response.json()
        token = data.get("access_token")
        if not token:
            raise ExternalServiceError("PayU authentication returned no token")

        await self._cache_token(token, data.get("expires_in"))
        return token

    def build_order_request(
        self,
        order: Order,
        items: list[CheckoutItem],
        origin: str,
        customer_ip: str,
    ) -> PayUOrderCreateRequest:
        first_name, last_name = split_name(order.customer_name or "")
        return PayUOrderCreateRequest(
            notify_url=self.notify_url or f"{origin.rstrip('/')}/api/v1/webhooks/payu",
            continue_url=f"{origin.rstrip('/')}/payment-success?extOrderId={order.id}",
            customer_ip=customer_ip,
            merchant_pos_id=self.pos_id,
            description=f"Darowizna - Zamówienie {order.id[:8]}",
            currency_code=self.currency_code,
            total_amount=to_minor_units(order.total_amount),
            buyer=PayUBuyer(
                email=order.customer_email,
                first_name=first_name,
                last_name=last_name,
            ),
            products=[
                PayUProduct(
                    name=item.product_name + (f" (dla {item.animal_name})" if item.animal_name else ""),
                    unit_price=to_minor_units(item.price),
                    quantity=str(item.quantity),
                )
                for item in items
            ],
            ext_order_id=order.id,
        )

    async def create_order(
        self,
        order: Order,
        items: list[CheckoutItem],
        origin: str,
        customer_ip: str,
        retry_on_401: bool = True,
    ) -> dict[str, Any]:
        self.ensure_configured()
        token = await self.authenticate()
        payload = self.build_order_request(order, items, origin, customer_ip)

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    f"{self.api_url}/api/v2_1/orders",
                    json=payload.model_dump(by_alias=True, exclude_none=True),
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=30.0,
                )
        except httpx.HTTPError as e:
            logger.error("PayU order creation request error: %s", e)
            raise ExternalServiceError("PayU order creation failed") from e

        if response.status_code == status.HTTP_401_UNAUTHORIZED and retry_on_401:
            await self._clear_token()
            logger.warning("PayU token expired, retrying")
            return await self.create_order(order, items, origin, customer_ip, retry_on_401=False)

        # PayU answers 302 with a JSON body carrying redirectUri
        if response.status_code not in (
            status.HTTP_200_OK,
            status.HTTP_201_CREATED,
            status.HTTP_302_FOUND,
        ):
            logger.error("PayU order creation failed: %s %s", response.status_code, response.text)
            raise ExternalServiceError(
                "PayU order creation failed",
                details={"status_code": response.status_code},
            )

        data = response.json()
        logger.info("PayU order created for %s: %s", order.id, data.get("orderId"))
        return data
