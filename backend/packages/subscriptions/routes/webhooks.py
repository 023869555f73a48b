"""
Webhook endpoint for Stripe events.

Public endpoint (no auth required); the signature is verified internally.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from common.core.otel_axiom_exporter import get_logger
from packages.subscriptions.dependencies import get_webhook_reconciler
from packages.subscriptions.exceptions import WebhookVerificationError
from packages.subscriptions.models.schemas.subscription import WebhookResponse
from packages.subscriptions.webhooks.stripe_webhook import StripeWebhookReconciler

logger = get_logger(__name__)

router = APIRouter()


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    reconciler: StripeWebhookReconciler = Depends(get_webhook_reconciler),
):
    """
    Receive webhook events from Stripe.

    Returns 200 for every authentic, well-formed event, handled or not, so
    Stripe only retries deliveries that failed verification.
    """
    payload_bytes = await request.body()
    try:
        payload = reconciler.parse(
            payload_bytes, request.headers.get("stripe-signature")
        )
    except WebhookVerificationError as e:
        logger.error(f"Stripe webhook rejected: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(e)}
        )

    handled = await reconciler.handle(payload)
    return WebhookResponse(received=True, handled=handled)
