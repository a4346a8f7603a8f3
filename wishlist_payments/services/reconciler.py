"""
Order reconciliation: applies a verified gateway notification to an order.

    pending ──SUCCESS/COMPLETED──▶ completed / confirmed
    pending ──FAILURE/CANCELED───▶ failed    / cancelled

Both terminal states are final. The transition is a single conditional
UPDATE (``WHERE payment_status = 'pending'``), so of any number of
concurrent or repeated deliveries exactly one wins. Only the winner of a
``completed`` transition runs the post-payment hooks, each inside its own
error boundary: once the status is committed the gateway must get a
success response whatever the hooks do.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError

from wishlist_payments.core.exceptions import OrderNotFoundError, PersistenceError
from wishlist_payments.core.unit_of_work import UnitOfWork
from wishlist_payments.models.order import Order
from wishlist_payments.schemas.order import (
    OrderStatus,
    PaymentNotification,
    PaymentStatus,
    ReconciliationOutcome,
    ReconciliationResult,
)
from wishlist_payments.services.batch_service import BatchAssignmentService
from wishlist_payments.services.notification_service import NotificationDispatcher
from wishlist_payments.services.slack_service import SlackService

logger = logging.getLogger(__name__)

PostCommitHook = Callable[[PaymentNotification, ReconciliationResult], Awaitable[None]]


class OrderReconciler:
    def __init__(
        self,
        uow: UnitOfWork,
        batch_service: BatchAssignmentService,
        dispatcher: NotificationDispatcher,
        slack_service: SlackService | None = None,
        background_tasks: BackgroundTasks | None = None,
    ):
        self.uow = uow
        self.batch_service = batch_service
        self.dispatcher = dispatcher
        self.slack_service = slack_service
        # Alerts queued here go out after the gateway has its response.
        self.background_tasks = background_tasks

    def post_commit_hooks(self) -> list[tuple[str, PostCommitHook]]:
        return [
            ("batch_assignment", self._assign_batch),
            ("confirmation_email", self._send_confirmation),
        ]

    async def reconcile(self, notification: PaymentNotification) -> ReconciliationResult:
        order_id = notification.order_id

        order = await self.uow.orders.get_by_id(order_id)
        if order is None:
            logger.error("Order not found: %s", order_id)
            raise OrderNotFoundError(order_id)

        self._check_amount(order, notification)

        if notification.payment_status is PaymentStatus.PENDING:
            logger.info(
                "Order %s: %s status %s is not final, nothing to apply",
                order_id,
                notification.provider.value,
                notification.gateway_status,
            )
            return ReconciliationResult(
                order_id=order_id,
                outcome=ReconciliationOutcome.UNCHANGED,
                payment_status=PaymentStatus(order.payment_status),
                order_status=OrderStatus(order.status),
            )

        logger.info(
            "Updating order: %s to status: %s (%s transaction %s)",
            order_id,
            notification.payment_status.value,
            notification.provider.value,
            notification.transaction_id or "unknown",
        )

        try:
            applied = await self.uow.orders.apply_status_if_pending(
                order_id,
                notification.payment_status,
                notification.order_status,
            )
            await self.uow.commit()
        except SQLAlchemyError as exc:
            await self.uow.rollback()
            logger.error("Error updating order %s: %s", order_id, exc)
            raise PersistenceError(
                "Failed to update order status",
                details={"order_id": order_id},
            ) from exc

        if not applied:
            return await self._not_applied(notification)

        result = ReconciliationResult(
            order_id=order_id,
            outcome=ReconciliationOutcome.APPLIED,
            payment_status=notification.payment_status,
            order_status=notification.order_status,
        )

        if notification.payment_status is PaymentStatus.COMPLETED:
            logger.info("Payment successful for order: %s", order_id)
            await self._run_post_commit_hooks(notification, result)

        return result

    async def _not_applied(self, notification: PaymentNotification) -> ReconciliationResult:
        order_id = notification.order_id
        statuses = await self.uow.orders.get_statuses(order_id)
        if statuses is None:
            raise OrderNotFoundError(order_id)
        payment_status, order_status = statuses

        if payment_status is notification.payment_status:
            logger.info("Order already %s, skipping duplicate: %s", payment_status.value, order_id)
            outcome = ReconciliationOutcome.DUPLICATE
        else:
            logger.warning(
                "Ignoring %s status %s for order %s: already %s",
                notification.provider.value,
                notification.gateway_status,
                order_id,
                payment_status.value,
            )
            outcome = ReconciliationOutcome.IGNORED

        return ReconciliationResult(
            order_id=order_id,
            outcome=outcome,
            payment_status=payment_status,
            order_status=order_status,
        )

    async def _run_post_commit_hooks(
        self,
        notification: PaymentNotification,
        result: ReconciliationResult,
    ) -> None:
        for name, hook in self.post_commit_hooks():
            try:
                await hook(notification, result)
            except Exception as exc:
                logger.exception("Post-payment step %s failed for order %s", name, result.order_id)
                result.hook_failures.append(name)
                await self._reset_session()
                await self._alert(
                    title=f"Post-payment step failed: {name}",
                    alert=(
                        f"*Order:* `{result.order_id}`\n"
                        f"*Provider:* `{notification.provider.value}`\n"
                        f"*Error:* {exc}"
                    ),
                    platform=notification.provider.value,
                )

    async def _alert(self, title: str, alert: str, platform: str) -> None:
        if self.slack_service is None:
            return
        if self.background_tasks is not None:
            self.background_tasks.add_task(
                self.slack_service.alert_quietly, title=title, alert=alert, platform=platform
            )
        else:
            await self.slack_service.alert_quietly(title=title, alert=alert, platform=platform)

    async def _reset_session(self) -> None:
        try:
            await self.uow.rollback()
        except SQLAlchemyError as exc:
            logger.error("Rollback after failed post-payment step raised: %s", exc)

    async def _assign_batch(self, notification: PaymentNotification, result: ReconciliationResult) -> None:
        result.batch_order_id = await self.batch_service.assign(notification.order_id)

    async def _send_confirmation(self, notification: PaymentNotification, result: ReconciliationResult) -> None:
        await self.dispatcher.dispatch(
            notification.order_id,
            buyer_email=notification.buyer_email,
            buyer_name=notification.buyer_name,
        )

    @staticmethod
    def _check_amount(order: Order, notification: PaymentNotification) -> None:
        if notification.amount is None:
            return
        try:
            expected = Decimal(order.total_amount).quantize(Decimal("0.01"))
            received = Decimal(notification.amount).quantize(Decimal("0.01"))
        except InvalidOperation:
            logger.warning("Unparseable amount on notification for order %s", order.id)
            return
        if received != expected:
            logger.warning(
                "Amount mismatch for order %s: notified %s, order total %s",
                order.id,
                received,
                expected,
            )
