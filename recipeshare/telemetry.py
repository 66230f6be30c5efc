"""OpenTelemetry tracing for RecipeShare.

Each engine operation and each LLM request runs inside a span. When tracing
is enabled and an OTLP endpoint is configured, spans are exported there;
in development they go to the console.

Environment Variables:
    - OTEL_SERVICE_NAME: Service name for traces (default: "recipeshare")

References:
    - OpenTelemetry Python Docs: https://opentelemetry.io/docs/languages/python/instrumentation/
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode, Tracer
from opentelemetry.trace.span import Span

from recipeshare import __version__
from recipeshare.config import settings
from recipeshare.logging import logger, operation_var, request_id_var, user_id_var

_tracer_provider: TracerProvider | None = None
_initialized: bool = False


def initialize_telemetry() -> None:
    """Initialize the global OpenTelemetry tracer provider.

    Idempotent: calling it more than once has no effect.

    Raises:
        ValueError: If the OTLP endpoint is invalid
    """
    global _tracer_provider, _initialized

    if _initialized:
        return

    service_name = os.getenv("OTEL_SERVICE_NAME", "recipeshare")

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
            "deployment.environment": settings.environment.value,
        }
    )

    _tracer_provider = TracerProvider(resource=resource)

    if settings.enable_tracing and settings.otlp_endpoint:
        try:
            otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
            _tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
            logger.info(f"Initialized OTLP span exporter for {settings.otlp_endpoint}")
        except Exception as e:
            logger.error(f"Failed to initialize OTLP exporter: {e}")
            raise ValueError(f"Invalid OTLP endpoint: {settings.otlp_endpoint}") from e

    if settings.enable_tracing and settings.is_development:
        _tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.debug("Initialized console span exporter for development")

    trace.set_tracer_provider(_tracer_provider)
    _initialized = True

    logger.debug(
        f"Telemetry initialized (service={service_name}, "
        f"tracing_enabled={settings.enable_tracing})"
    )


def get_tracer(name: str) -> Tracer:
    """Get a tracer for the given module, initializing the provider if needed."""
    if not _initialized:
        initialize_telemetry()

    return trace.get_tracer(name)


def add_span_attributes(span: Span, attributes: dict[str, Any]) -> None:
    """Add multiple attributes to a span.

    ``None`` values are skipped; lists and dicts are stringified.
    """
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, (list, dict)):
            value = str(value)
        span.set_attribute(key, value)


def record_exception_in_span(
    span: Span,
    exception: Exception,
    set_status: bool = True,
) -> None:
    """Record an exception in a span and optionally set error status."""
    span.record_exception(exception)
    if set_status:
        span.set_status(Status(StatusCode.ERROR, str(exception)))


def sync_logging_context_to_span(span: Span) -> None:
    """Copy request_id, user_id and operation from the logging context to a span."""
    add_span_attributes(
        span,
        {
            "request_id": request_id_var.get(),
            "user_id": user_id_var.get(),
            "operation": operation_var.get(),
        },
    )


@contextmanager
def traced(
    tracer: Tracer,
    span_name: str,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span]:
    """Start a span, tag it with the logging context, and record failures.

    Example:
        ```python
        with traced(tracer, "engine.submit_rating", {"recipe_id": rid}) as span:
            ...
        ```
    """
    with tracer.start_as_current_span(
        span_name,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        sync_logging_context_to_span(span)
        if attributes:
            add_span_attributes(span, attributes)
        try:
            yield span
        except Exception as exc:
            record_exception_in_span(span, exc)
            raise


def shutdown_telemetry() -> None:
    """Shutdown the tracer provider and flush pending spans."""
    global _tracer_provider, _initialized

    if _tracer_provider and _initialized:
        _tracer_provider.shutdown()
        _initialized = False
        logger.debug("Telemetry shut down")


__all__ = [
    "initialize_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "add_span_attributes",
    "record_exception_in_span",
    "sync_logging_context_to_span",
    "traced",
]
