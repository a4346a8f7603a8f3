import json

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from wishlist_payments.core.dependencies import get_slack_service
from wishlist_payments.repositories.order_repository import OrderRepository
from wishlist_payments.schemas.order import OrderStatus, PaymentStatus
from wishlist_payments.services.slack_service import SlackService

from tests.conftest import build_app
from tests.factories import (
    PAYU_SECOND_KEY,
    collecting_batches,
    create_order,
    load_order,
    payu_signature_header,
)

pytestmark = [pytest.mark.asyncio]

URL = "/api/v1/webhooks/payu"


def payu_body(order_id: str, status: str = "COMPLETED", total: str = "10000", buyer: dict | None = None) -> bytes:
    order = {
        "orderId": "PAYU-ORDER-1",
        "extOrderId": order_id,
        "status": status,
        "totalAmount": total,
        "currencyCode": "PLN",
    }
    if buyer is not None:
        order["buyer"] = buyer
    return json.dumps({"order": order}).encode("utf-8")


async def post_signed(client, body: bytes, key: str = PAYU_SECOND_KEY, algorithm: str = "MD5"):
    return await client.post(
        URL,
        content=body,
        headers={
            "Content-Type": "application/json",
            "OpenPayu-Signature": payu_signature_header(body, key=key, algorithm=algorithm),
        },
    )


async def test_completed_confirms_order(client, session_factory, mail):
    order = await create_order(session_factory, organization_ids=["org-1"])

    response = await post_signed(client, payu_body(order.id))

    assert response.status_code == 200
    assert response.json() == {"success": True}
    stored = await load_order(session_factory, order.id)
    assert stored.payment_status == PaymentStatus.COMPLETED.value
    assert stored.status == OrderStatus.CONFIRMED.value
    assert len(await collecting_batches(session_factory, "org-1")) == 1
    assert len(mail.requests) == 1


async def test_sha256_signature_accepted(client, session_factory):
    order = await create_order(session_factory)

    response = await post_signed(client, payu_body(order.id), algorithm="SHA-256")

    assert response.status_code == 200


async def test_redelivery_sends_one_email(client, session_factory, mail):
    order = await create_order(session_factory)
    body = payu_body(order.id)

    await post_signed(client, body)
    response = await post_signed(client, body)

    assert response.status_code == 200
    assert len(mail.requests) == 1


@pytest.mark.parametrize("gateway_status", ["CANCELED", "REJECTED"])
async def test_cancellation_marks_order_failed(client, session_factory, mail, gateway_status):
    order = await create_order(session_factory)

    response = await post_signed(client, payu_body(order.id, status=gateway_status))

    assert response.status_code == 200
    stored = await load_order(session_factory, order.id)
    assert stored.payment_status == PaymentStatus.FAILED.value
    assert stored.status == OrderStatus.CANCELLED.value
    assert mail.requests == []


async def test_late_completion_after_cancel_is_ignored(client, session_factory, mail):
    order = await create_order(session_factory)

    await post_signed(client, payu_body(order.id, status="CANCELED"))
    response = await post_signed(client, payu_body(order.id, status="COMPLETED"))

    assert response.status_code == 200
    assert (await load_order(session_factory, order.id)).payment_status == PaymentStatus.FAILED.value
    assert mail.requests == []


async def test_waiting_for_confirmation_changes_nothing(client, session_factory):
    order = await create_order(session_factory)

    response = await post_signed(client, payu_body(order.id, status="WAITING_FOR_CONFIRMATION"))

    assert response.status_code == 200
    assert (await load_order(session_factory, order.id)).payment_status == PaymentStatus.PENDING.value


async def test_invalid_signature_is_401(client, session_factory, mail):
    order = await create_order(session_factory)

    response = await post_signed(client, payu_body(order.id), key="wrong-key")

    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTHENTICATION_FAILED"
    assert response.json()["message"] == "Invalid signature"
    assert (await load_order(session_factory, order.id)).payment_status == PaymentStatus.PENDING.value
    assert mail.requests == []


async def test_body_altered_after_signing_is_401(client, session_factory):
    order = await create_order(session_factory)
    body = payu_body(order.id, status="CANCELED")
    header = payu_signature_header(body)

    response = await client.post(
        URL,
        content=payu_body(order.id, status="COMPLETED"),
        headers={"Content-Type": "application/json", "OpenPayu-Signature": header},
    )

    assert response.status_code == 401


async def test_missing_signature_is_401_in_strict_mode(client, session_factory):
    order = await create_order(session_factory)

    response = await client.post(URL, content=payu_body(order.id), headers={"Content-Type": "application/json"})

    assert response.status_code == 401
    assert response.json()["message"] == "Missing signature"


async def test_missing_key_is_500_in_strict_mode(settings, session_factory, mail, token_cache):
    order = await create_order(session_factory)
    app = build_app(settings.model_copy(update={"PAYU_SECOND_KEY": ""}), session_factory, mail, token_cache)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await post_signed(client, payu_body(order.id))

    assert response.status_code == 500
    assert (await load_order(session_factory, order.id)).payment_status == PaymentStatus.PENDING.value


async def test_unsigned_notification_processed_in_permissive_mode(settings, session_factory, mail, token_cache):
    order = await create_order(session_factory)
    permissive = settings.model_copy(update={"PAYU_SECOND_KEY": "", "PAYU_REQUIRE_SIGNATURE": False})
    app = build_app(permissive, session_factory, mail, token_cache)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.post(
            URL, content=payu_body(order.id), headers={"Content-Type": "application/json"}
        )

    assert response.status_code == 200
    assert (await load_order(session_factory, order.id)).payment_status == PaymentStatus.COMPLETED.value


async def test_malformed_json_is_400(client):
    body = b"{not json"

    response = await post_signed(client, body)

    assert response.status_code == 400
    assert response.json()["error_code"] == "MALFORMED_PAYLOAD"


async def test_missing_ext_order_id_is_400(client):
    body = json.dumps({"order": {"status": "COMPLETED"}}).encode("utf-8")

    response = await post_signed(client, body)

    assert response.status_code == 400


async def test_unknown_order_is_404(client):
    response = await post_signed(client, payu_body("no-such-order"))

    assert response.status_code == 404
    assert response.json()["error_code"] == "ORDER_NOT_FOUND"


async def test_buyer_email_used_when_order_has_none(client, session_factory, mail):
    order = await create_order(session_factory, customer_email=None, customer_name=None)
    body = payu_body(order.id, buyer={"email": "payer@example.com", "firstName": "Jan"})

    response = await post_signed(client, body)

    assert response.status_code == 200
    sent = json.loads(mail.requests[0].content)
    assert sent["customerEmail"] == "payer@example.com"
    assert sent["customerName"] == "Jan"


async def test_numeric_amount_fields_are_accepted(client, session_factory, mail, caplog):
    order = await create_order(session_factory, total="100.00")
    body = json.dumps(
        {
            "order": {
                "orderId": 123456,
                "extOrderId": order.id,
                "status": "COMPLETED",
                "totalAmount": 10000,
                "currencyCode": "PLN",
            }
        }
    ).encode("utf-8")

    response = await post_signed(client, body)

    assert response.status_code == 200
    assert (await load_order(session_factory, order.id)).payment_status == PaymentStatus.COMPLETED.value
    assert "Amount mismatch" not in caplog.text
    assert len(mail.requests) == 1


async def test_persistence_failure_is_500_and_alerts_slack(settings, session_factory, mail, token_cache, monkeypatch):
    app = build_app(settings, session_factory, mail, token_cache)
    slack_requests = []

    def slack_handler(request):
        slack_requests.append(request)
        return httpx.Response(200, text="ok")

    slack_settings = settings.model_copy(update={"SLACK_ALERTS_URL": "https://hooks.slack.test/alerts"})
    app.dependency_overrides[get_slack_service] = lambda: SlackService(
        slack_settings, transport=httpx.MockTransport(slack_handler)
    )
    order = await create_order(session_factory)

    async def broken_update(self, *args, **kwargs):
        raise OperationalError("UPDATE orders", {}, Exception("database is locked"))

    monkeypatch.setattr(OrderRepository, "apply_status_if_pending", broken_update)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await post_signed(client, payu_body(order.id))

    assert response.status_code == 500
    assert response.json()["error_code"] == "PERSISTENCE_ERROR"
    assert len(slack_requests) == 1
    assert (await load_order(session_factory, order.id)).payment_status == PaymentStatus.PENDING.value
