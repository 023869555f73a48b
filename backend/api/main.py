from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from common.core.config import settings
from common.core.constants import API_KEY_HEADER, Environment
from common.core.exceptions import (
    AppException,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from common.core.otel_axiom_exporter import get_logger
from common.db.session import dispose_engine
from common.providers.rate_limiter.limiter import limiter
from api.v1.routes.router import api_router
from packages.subscriptions.exceptions import GatewayError, GatewayNotConfiguredError

API_PREFIX = "/process-subscriptions/v1"

logger = get_logger(__name__)

# Most specific first
EXCEPTION_STATUS = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (GatewayNotConfiguredError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (GatewayError, status.HTTP_502_BAD_GATEWAY),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting subscription API",
        extra={"environment": settings.environment, "prefix": API_PREFIX},
    )
    yield
    logger.info("Shutting down subscription API...")
    await dispose_engine()


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    for exc_type, status_code in EXCEPTION_STATUS:
        if isinstance(exc, exc_type):
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    logger.warning(
        f"{type(exc).__name__}: {str(exc)}",
        extra={"path": request.url.path, "status_code": status_code},
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# Only expose OpenAPI docs in local development
local = settings.environment == Environment.LOCAL

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs" if local else None,
    redoc_url="/redoc" if local else None,
    openapi_url="/openapi.json" if local else None,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(AppException, app_exception_handler)
app.add_middleware(SlowAPIMiddleware)

FastAPIInstrumentor.instrument_app(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", API_KEY_HEADER, "Stripe-Signature"],
)

# Webhooks are public; order and subscription routers require X-API-Key
app.include_router(api_router, prefix=API_PREFIX)


# Probe endpoint outside the API prefix
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}
