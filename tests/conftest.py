from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from wishlist_payments.core.config import Settings
from wishlist_payments.core.dependencies import get_notification_dispatcher, get_settings, get_unit_of_work
from wishlist_payments.core.unit_of_work import UnitOfWork
from wishlist_payments.main import create_app
from wishlist_payments.models import Base
from wishlist_payments.services.notification_service import NotificationDispatcher

from tests.factories import HOTPAY_HASLO, HOTPAY_SEKRET, PAYU_SECOND_KEY

CONFIRMATION_URL = "https://mail.test/send-order-confirmation"


class FakeTokenCache:
    def __init__(self):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self.values[key] = value
        self.ttls[key] = ttl

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)

    async def close(self) -> None:
        pass


class MailRecorder:
    """httpx MockTransport handler standing in for the e-mail collaborator."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"success": True})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        LOG_LEVEL="DEBUG",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}",
        HOTPAY_HASLO=HOTPAY_HASLO,
        HOTPAY_SEKRET=HOTPAY_SEKRET,
        PAYU_POS_ID="300746",
        PAYU_CLIENT_ID="300746",
        PAYU_CLIENT_SECRET="payu-client-secret",
        PAYU_SECOND_KEY=PAYU_SECOND_KEY,
        ORDER_CONFIRMATION_URL=CONFIRMATION_URL,
        SLACK_ALERTS_URL="",
        PUBLIC_BASE_URL="https://shop.test",
    )


@pytest_asyncio.fixture
async def engine(settings) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def uow(session_factory) -> AsyncGenerator[UnitOfWork, None]:
    async with UnitOfWork(session_factory) as uow:
        yield uow


@pytest.fixture
def mail() -> MailRecorder:
    return MailRecorder()


@pytest.fixture
def token_cache() -> FakeTokenCache:
    return FakeTokenCache()


def build_app(settings, session_factory, mail, token_cache):
    app = create_app(settings)
    app.state.session_factory = session_factory
    app.state.redis = token_cache

    def dispatcher_override(
        settings: Settings = Depends(get_settings),
        uow: UnitOfWork = Depends(get_unit_of_work),
    ) -> NotificationDispatcher:
        return NotificationDispatcher(settings, uow, transport=mail.transport)

    app.dependency_overrides[get_notification_dispatcher] = dispatcher_override
    return app


@pytest.fixture
def app(settings, session_factory, mail, token_cache):
    return build_app(settings, session_factory, mail, token_cache)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
