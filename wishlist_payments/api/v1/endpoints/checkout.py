import logging

from fastapi import APIRouter, Depends, Request

from wishlist_payments.core.config import Settings
from wishlist_payments.core.dependencies import (
    get_checkout_service,
    get_hotpay_service,
    get_payu_service,
    get_settings,
)
from wishlist_payments.schemas.hotpay import HotPayCheckoutResponse
from wishlist_payments.schemas.order import CheckoutRequest, PaymentProvider
from wishlist_payments.schemas.payu import PayUCheckoutResponse
from wishlist_payments.services.checkout_service import CheckoutService, resolve_origin
from wishlist_payments.services.hotpay_service import HotPayService
from wishlist_payments.services.payu_service import PayUService
from wishlist_payments.api.v1.endpoints.webhooks import client_ip

logger = logging.getLogger(__name__)

router = APIRouter()


def request_origin(request: Request, settings: Settings) -> str:
    return resolve_origin(
        request.headers.get("origin"),
        request.headers.get("referer"),
        settings.PUBLIC_BASE_URL,
    )


@router.post("/hotpay", response_model=HotPayCheckoutResponse)
async def create_hotpay_order(
    payload: CheckoutRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    hotpay: HotPayService = Depends(get_hotpay_service),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    hotpay.ensure_configured()
    logger.info("Creating HotPay order for: %s", payload.customer_email)

    order = await checkout.create_pending_order(payload, PaymentProvider.HOTPAY)
    params = hotpay.build_payment_params(
        order_id=order.id,
        total_amount=order.total_amount,
        customer_email=payload.customer_email,
        customer_name=payload.customer_name,
        origin=request_origin(request, settings),
    )

    return HotPayCheckoutResponse(
        order_id=order.id,
        hotpay_url=hotpay.payment_url,
        hotpay_params=params,
    )


@router.post("/payu", response_model=PayUCheckoutResponse)
async def create_payu_order(
    payload: CheckoutRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    payu: PayUService = Depends(get_payu_service),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    payu.ensure_configured()
    logger.info("Creating PayU order for: %s", payload.customer_email)

    order = await checkout.create_pending_order(payload, PaymentProvider.PAYU)
    data = await payu.create_order(
        order,
        payload.items,
        origin=request_origin(request, settings),
        customer_ip=client_ip(request) or "127.0.0.1",
    )

    return PayUCheckoutResponse(
        order_id=order.id,
        redirect_uri=data.get("redirectUri"),
        status=data.get("status"),
    )
