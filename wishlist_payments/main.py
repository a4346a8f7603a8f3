import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wishlist_payments.api.v1.api import api_router
from wishlist_payments.core.config import Settings, get_settings
from wishlist_payments.core.database import create_engine, create_session_factory
from wishlist_payments.core.exceptions import AppException
from wishlist_payments.core.redis import RedisClient

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    owns_engine = getattr(app.state, "session_factory", None) is None

    if owns_engine:
        app.state.engine = create_engine(settings)
        app.state.session_factory = create_session_factory(app.state.engine)
    if getattr(app.state, "redis", None) is None:
        app.state.redis = RedisClient(settings)

    if not settings.hotpay_configured:
        logger.error("HotPay credentials not configured; HotPay endpoints will answer 500")
    if not settings.PAYU_SECOND_KEY:
        logger.warning(
            "PAYU_SECOND_KEY not configured; PayU notifications will be %s",
            "rejected" if settings.PAYU_REQUIRE_SIGNATURE else "processed unverified",
        )

    try:
        yield
    finally:
        await app.state.redis.close()
        if owns_engine:
            await app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.state.settings = settings

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        else:
            logger.warning("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error_code": exc.error_code,
                "message": exc.message,
                "details": exc.details,
            },
        )

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok", "environment": settings.ENVIRONMENT}

    app.include_router(api_router, prefix="/api/v1")
    return app
