"""
Subscription admin API routes.

Endpoints behind the shared X-API-Key for the admin UI and the customer
account page.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from packages.subscriptions.dependencies import get_admin_service, get_sweep_service
from packages.subscriptions.models.domain.enums import SubscriptionStatus
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.models.schemas.subscription import (
    CancelSubscriptionRequest,
    ExtendLicenseRequest,
    LicenseActionResponse,
    LicenseStatusResponse,
    RevokeLicenseRequest,
    SetStatusRequest,
    SubscriptionListResponse,
    SubscriptionResponse,
    SweepResponse,
    TransitionResponse,
)
from packages.subscriptions.services.admin_service import SubscriptionAdminService
from packages.subscriptions.services.lifecycle_service import TransitionResult
from packages.subscriptions.services.sweep_service import SweepService

router = APIRouter()


def to_response(subscription: Subscription) -> SubscriptionResponse:
    return SubscriptionResponse(
        **subscription.model_dump(), has_access=subscription.has_access()
    )


def to_transition_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        subscription=to_response(result.after),
        previous_status=result.before.status,
        changed=result.changed,
    )


# ============================================================================
# Listing
# ============================================================================


@router.get("/subscriptions", response_model=SubscriptionListResponse)
async def list_subscriptions(
    status_filter: Optional[SubscriptionStatus] = Query(default=None, alias="status"),
    user_id: Optional[int] = None,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    """List subscriptions newest first, optionally filtered by status or user."""
    items, total = await admin.list_subscriptions(
        status=status_filter, user_id=user_id, page=page, per_page=per_page
    )
    return SubscriptionListResponse(
        items=[to_response(s) for s in items],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription(
    subscription_id: int,
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    return to_response(await admin.get(subscription_id))


# ============================================================================
# Lifecycle actions
# ============================================================================


@router.post(
    "/subscriptions/{subscription_id}/cancel", response_model=TransitionResponse
)
async def cancel_subscription(
    subscription_id: int,
    request: CancelSubscriptionRequest,
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    """
    Cancel a subscription.

    With `user_id` set this is a customer cancellation: ownership is checked
    and the subscription runs to the end of the paid period.
    """
    if request.user_id is not None:
        result = await admin.customer_cancel(subscription_id, request.user_id)
    else:
        result = await admin.cancel(subscription_id, immediate=request.immediate)
    return to_transition_response(result)


@router.delete(
    "/subscriptions/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_subscription(
    subscription_id: int,
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    """Purge the subscription row. Does not touch the processor or license."""
    await admin.delete(subscription_id)


@router.put(
    "/subscriptions/{subscription_id}/status", response_model=TransitionResponse
)
async def set_subscription_status(
    subscription_id: int,
    request: SetStatusRequest,
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    result = await admin.set_status(subscription_id, request.status)
    return to_transition_response(result)


@router.post(
    "/subscriptions/{subscription_id}/convert-trial",
    response_model=TransitionResponse,
)
async def convert_trial(
    subscription_id: int,
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    result = await admin.convert_trial(subscription_id)
    return to_transition_response(result)


# ============================================================================
# License actions
# ============================================================================


@router.post(
    "/subscriptions/{subscription_id}/trial-addon",
    response_model=LicenseActionResponse,
)
async def setup_trial_addon(
    subscription_id: int,
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    success = await admin.setup_trial_addon(subscription_id)
    return LicenseActionResponse(success=success)


@router.post(
    "/subscriptions/{subscription_id}/extend-license",
    response_model=LicenseActionResponse,
)
async def extend_license(
    subscription_id: int,
    request: ExtendLicenseRequest,
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    success = await admin.extend_license(subscription_id, days=request.days)
    return LicenseActionResponse(success=success)


@router.post(
    "/subscriptions/{subscription_id}/revoke-license",
    response_model=LicenseActionResponse,
)
async def revoke_license(
    subscription_id: int,
    request: RevokeLicenseRequest,
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    success = await admin.revoke_license(subscription_id, reason=request.reason)
    return LicenseActionResponse(success=success)


@router.post(
    "/subscriptions/{subscription_id}/reactivate-license",
    response_model=LicenseActionResponse,
)
async def reactivate_license(
    subscription_id: int,
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    success = await admin.reactivate_license(subscription_id)
    return LicenseActionResponse(success=success)


@router.get(
    "/subscriptions/{subscription_id}/license-status",
    response_model=LicenseStatusResponse,
)
async def license_status(
    subscription_id: int,
    admin: SubscriptionAdminService = Depends(get_admin_service),
):
    subscription = await admin.get(subscription_id)
    license_status = await admin.license_status(subscription_id)
    license_key = await admin.license_sync.resolve_license_key(subscription)
    return LicenseStatusResponse(
        subscription_id=subscription_id,
        license_key=license_key,
        status=license_status,
    )


# ============================================================================
# Sweep
# ============================================================================


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep(sweep: SweepService = Depends(get_sweep_service)):
    """Run the reconciliation sweep now."""
    report = await sweep.run()
    return SweepResponse(**report.to_dict())
