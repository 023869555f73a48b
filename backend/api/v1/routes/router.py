from fastapi import APIRouter, Depends

from api.v1.routes import (
    health,
)
from packages.subscriptions.dependencies import require_api_key
from packages.subscriptions.routes import orders, subscriptions, webhooks

api_router = APIRouter()

# Health check (no auth required)
api_router.include_router(health.router, prefix="/health", tags=["health"])

# Webhooks (no auth - signature verified internally)
api_router.include_router(webhooks.router, tags=["webhooks"])

# Storefront and admin routes (shared X-API-Key)
api_router.include_router(
    orders.router,
    tags=["orders"],
    dependencies=[Depends(require_api_key)],
)
api_router.include_router(
    subscriptions.router,
    tags=["subscriptions"],
    dependencies=[Depends(require_api_key)],
)
