"""
Storefront order hooks.

Called by the storefront when an order is paid, and before checkout to block
duplicate purchases.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from packages.subscriptions.dependencies import (
    get_admin_service,
    get_lifecycle_service,
)
from packages.subscriptions.models.domain.order import Order
from packages.subscriptions.models.schemas.subscription import (
    OrderNoteResponse,
    OrderProcessedResponse,
    PurchaseCheckResponse,
)
from packages.subscriptions.routes.subscriptions import to_response
from packages.subscriptions.services.admin_service import SubscriptionAdminService
from packages.subscriptions.services.lifecycle_service import (
    SubscriptionLifecycleService,
)

router = APIRouter()


@router.post("/orders", response_model=OrderProcessedResponse)
async def process_order(
    order: Order,
    lifecycle: SubscriptionLifecycleService = Depends(get_lifecycle_service),
):
    """
    Create subscriptions for a paid order.

    Safe to call repeatedly: an order is only processed once.
    """
    created = await lifecycle.process_order(order)
    return OrderProcessedResponse(
        order_id=order.id, subscriptions=[to_response(s) for s in created]
    )


@router.get("/orders/can-purchase", response_model=PurchaseCheckResponse)
async def can_purchase(
    product_id: int,
    user_id: Optional[int] = None,
    lifecycle: SubscriptionLifecycleService = Depends(get_lifecycle_service),
):
    """Whether the user may buy this subscription product."""
    allowed = await lifecycle.can_purchase(user_id, product_id)
    return PurchaseCheckResponse(can_purchase=allowed)


@router.get("/orders/{order_id}/notes", response_model=list[OrderNoteResponse])
async def get_order_notes(
    order_id: int,
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    notes = await admin.get_order_notes(order_id)
    return [OrderNoteResponse.model_validate(note) for note in notes]
