from typing import AsyncIterator

from fastapi import BackgroundTasks, Depends, Request

from wishlist_payments.core.config import Settings
from wishlist_payments.core.unit_of_work import UnitOfWork
from wishlist_payments.services.batch_service import BatchAssignmentService
from wishlist_payments.services.checkout_service import CheckoutService
from wishlist_payments.services.hotpay_service import HotPayService
from wishlist_payments.services.notification_service import NotificationDispatcher
from wishlist_payments.services.payu_service import PayUService
from wishlist_payments.services.reconciler import OrderReconciler
from wishlist_payments.services.slack_service import SlackService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_unit_of_work(request: Request) -> AsyncIterator[UnitOfWork]:
    async with UnitOfWork(request.app.state.session_factory) as uow:
        yield uow


def get_slack_service(settings: Settings = Depends(get_settings)) -> SlackService:
    return SlackService(settings)


def get_notification_dispatcher(
    settings: Settings = Depends(get_settings),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> NotificationDispatcher:
    return NotificationDispatcher(settings, uow)


def get_reconciler(
    background_tasks: BackgroundTasks,
    uow: UnitOfWork = Depends(get_unit_of_work),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    slack_service: SlackService = Depends(get_slack_service),
) -> OrderReconciler:
    return OrderReconciler(
        uow=uow,
        batch_service=BatchAssignmentService(uow),
        dispatcher=dispatcher,
        slack_service=slack_service,
        background_tasks=background_tasks,
    )


def get_hotpay_service(settings: Settings = Depends(get_settings)) -> HotPayService:
    return HotPayService(settings)


def get_payu_service(request: Request, settings: Settings = Depends(get_settings)) -> PayUService:
    return PayUService(settings, cache=getattr(request.app.state, "redis", None))


def get_checkout_service(uow: UnitOfWork = Depends(get_unit_of_work)) -> CheckoutService:
    return CheckoutService(uow)
