from fastapi import APIRouter

from app.api.api_v1.endpoints import (
    integrations,
    webhooks,
    orders,
    api_keys
)

api_router = APIRouter()

api_router.include_router(integrations.router, prefix="/integrations", tags=["integrations"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(api_keys.router, prefix="/api-keys", tags=["api-keys"])
