from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger
from common.db.session import get_db
from common.providers.rate_limiter.limiter import limiter

logger = get_logger(__name__)

router = APIRouter()


@router.get("/")
async def health_check(request: Request):
    # No rate limiting or logging - probes hit this constantly
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.api_version,
    }


@router.get("/ready")
@limiter.limit("100/minute")
async def readiness_check(request: Request, db: AsyncSession = Depends(get_db)):
    """Database connectivity plus which external gateways have credentials."""
    gateways = {
        "stripe": settings.stripe_configured,
        "stripe_webhooks": bool(settings.stripe_webhook_secret),
        "license_api": settings.license_api_configured,
        "smtp": bool(settings.smtp_host),
    }
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database readiness check failed: {e}")
        return {"status": "unhealthy", "database": "disconnected", "gateways": gateways}
    return {"status": "healthy", "database": "connected", "gateways": gateways}
