from fastapi import APIRouter

from wishlist_payments.api.v1.endpoints import checkout, webhooks

api_router = APIRouter()

api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])

api_router.include_router(checkout.router, prefix="/checkout", tags=["checkout"])
