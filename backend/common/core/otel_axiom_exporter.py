"""
Logging and tracing setup.

Spans are exported to Axiom over OTLP/HTTP when AXIOM_TOKEN is set and kept
in-process otherwise. Every module obtains its logger through get_logger().
"""

import asyncio
import functools
import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode

from common.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
AXIOM_TRACES_ENDPOINT = "https://api.axiom.co/v1/traces"

_initialized = False
axiom_tracer = None


def configure_logging(level: Optional[str] = None):
    """(Re)configure the root logger. Workers call this with their CLI level."""
    level_name = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        force=True,
    )


def _initialize_telemetry():
    """Initialize logging and the tracer provider once per process."""
    global _initialized, axiom_tracer

    if _initialized:
        return

    configure_logging()

    provider = TracerProvider(
        resource=Resource(
            attributes={
                SERVICE_NAME: settings.otel_service_name,
                SERVICE_VERSION: settings.otel_service_version,
            }
        )
    )
    if settings.axiom_token:
        provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(
                    endpoint=AXIOM_TRACES_ENDPOINT,
                    headers={
                        "Authorization": f"Bearer {settings.axiom_token}",
                        "X-Axiom-Dataset": settings.axiom_dataset,
                    },
                )
            )
        )
    trace.set_tracer_provider(provider)
    axiom_tracer = trace.get_tracer(settings.otel_service_name)

    _initialized = True
    logging.getLogger(__name__).info(
        "Telemetry initialized",
        extra={"axiom_export": bool(settings.axiom_token)},
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance. Ensures telemetry is initialized.
    Use this instead of logging.getLogger() directly.
    """
    if not _initialized:
        _initialize_telemetry()
    return logging.getLogger(name)


def trace_span(func):
    """
    Wrap a function in a span named after it (Class.method for methods).

    Exceptions are recorded on the span and re-raised.
    """

    def _span_name(args) -> str:
        if args and hasattr(args[0], func.__name__):
            return f"{args[0].__class__.__name__}.{func.__name__}"
        return func.__name__

    def _record_failure(span, error: Exception):
        span.record_exception(error)
        span.set_status(Status(StatusCode.ERROR, str(error)))

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        with axiom_tracer.start_as_current_span(
            _span_name(args), record_exception=False
        ) as span:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                _record_failure(span, e)
                raise

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        with axiom_tracer.start_as_current_span(
            _span_name(args), record_exception=False
        ) as span:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                _record_failure(span, e)
                raise

    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper


_initialize_telemetry()
