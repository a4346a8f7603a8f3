import json
import logging
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse

from wishlist_payments.core.dependencies import (
    get_hotpay_service,
    get_payu_service,
    get_reconciler,
    get_slack_service,
)
from wishlist_payments.core.exceptions import AppException, MalformedPayloadError, PersistenceError
from wishlist_payments.services.hotpay_service import HotPayService
from wishlist_payments.services.payu_service import SIGNATURE_HEADER, PayUService
from wishlist_payments.services.reconciler import OrderReconciler
from wishlist_payments.services.slack_service import SlackService

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def read_notification_fields(request: Request) -> dict[str, str]:
    """HotPay posts forms, but JSON and bare url-encoded bodies are accepted too."""
    content_type = request.headers.get("content-type", "")
    if any(kind in content_type for kind in FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: str(value) for key, value in form.items()}

    body = (await request.body()).decode("utf-8", errors="replace")
    if body.lstrip().startswith("{"):
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise MalformedPayloadError("Invalid JSON body") from exc
        return {key: str(value) for key, value in data.items() if value is not None}

    return dict(parse_qsl(body, keep_blank_values=True))


@router.post("/hotpay", response_class=PlainTextResponse)
async def handle_hotpay_webhook(
    request: Request,
    hotpay: HotPayService = Depends(get_hotpay_service),
    reconciler: OrderReconciler = Depends(get_reconciler),
    slack_service: SlackService = Depends(get_slack_service),
):
    logger.info("HotPay webhook received")

    try:
        fields = await read_notification_fields(request)
        notification = hotpay.handle_notification(fields, client_ip=client_ip(request))
        result = await reconciler.reconcile(notification)

    except PersistenceError as exc:
        await slack_service.alert_quietly(
            title="HotPay webhook: order update failed",
            alert=f"*Order:* `{exc.details.get('order_id')}`\n*Error:* {exc.message}",
            platform="HotPay",
        )
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    except AppException as exc:
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    logger.info("HotPay webhook processed: order=%s outcome=%s", result.order_id, result.outcome.value)
    return PlainTextResponse("OK", status_code=status.HTTP_200_OK)


@router.post("/payu")
async def handle_payu_webhook(
    request: Request,
    payu: PayUService = Depends(get_payu_service),
    reconciler: OrderReconciler = Depends(get_reconciler),
    slack_service: SlackService = Depends(get_slack_service),
):
    # The signature covers the exact bytes received.
    raw_body = await request.body()
    logger.info("Received PayU notification (%d bytes)", len(raw_body))

    notification = payu.handle_notification(raw_body, request.headers.get(SIGNATURE_HEADER))

    try:
        result = await reconciler.reconcile(notification)
    except PersistenceError as exc:
        await slack_service.alert_quietly(
            title="PayU webhook: order update failed",
            alert=f"*Order:* `{notification.order_id}`\n*Error:* {exc.message}",
            platform="PayU",
        )
        raise

    logger.info("PayU webhook processed: order=%s outcome=%s", result.order_id, result.outcome.value)
    return {"success": True}
