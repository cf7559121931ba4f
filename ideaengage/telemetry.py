"""OpenTelemetry tracing for engagement operations.

Every registry and store operation runs inside ``operation_span``, so a
slow claim or a burst of conflicts can be followed from the HTTP request
down to the storage statement. Spans carry the idea and user ids plus the
logging context (``request_id``, ``user_id``, ``operation``).

Exporters:
    - OTLP over gRPC when ``ENABLE_TRACING`` is on and ``OTLP_ENDPOINT`` is set
    - Console when tracing is on without an endpoint
    - None otherwise; spans are still created, then dropped

The service name comes from ``OTEL_SERVICE_NAME`` (default ``ideaengage``).
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)
from opentelemetry.trace import Status, StatusCode, Tracer
from opentelemetry.trace.span import Span

from ideaengage import __version__
from ideaengage.config import settings
from ideaengage.logging import get_request_context, logger, operation_var

_tracer_provider: TracerProvider | None = None
_shut_down = False

TRACER_NAME = "ideaengage"


def _build_exporter() -> SpanExporter | None:
    if not settings.enable_tracing:
        return None
    if not settings.otlp_endpoint:
        logger.debug("Tracing to console (no OTLP endpoint set)")
        return ConsoleSpanExporter()
    try:
        exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
    except Exception as e:
        logger.error(f"Failed to create OTLP exporter for {settings.otlp_endpoint}: {e}")
        raise ValueError(f"Invalid OTLP endpoint: {settings.otlp_endpoint}") from e
    logger.info(f"Exporting traces to {settings.otlp_endpoint}")
    return exporter


def initialize_telemetry() -> None:
    """Install the global tracer provider. Repeated calls are no-ops.

    Raises:
        ValueError: If the OTLP exporter cannot be built for the endpoint
    """
    global _tracer_provider

    if _tracer_provider is not None:
        return

    service_name = os.getenv("OTEL_SERVICE_NAME", "ideaengage")
    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": service_name,
                "service.version": __version__,
                "deployment.environment": settings.environment.value,
            }
        )
    )

    exporter = _build_exporter()
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    logger.debug(
        f"Telemetry initialized for {service_name} "
        f"(tracing {'on' if settings.enable_tracing else 'off'})"
    )


def shutdown_telemetry() -> None:
    """Flush pending spans and stop the exporters.

    The provider stays installed: OpenTelemetry accepts only one global
    provider per process, so a later ``initialize_telemetry`` is a no-op
    rather than a second provider that would never receive spans.
    """
    global _shut_down

    if _tracer_provider is None or _shut_down:
        return
    _tracer_provider.shutdown()
    _shut_down = True
    logger.info("Telemetry shut down")


def get_tracer(name: str = TRACER_NAME) -> Tracer:
    if _tracer_provider is None:
        initialize_telemetry()
    return trace.get_tracer(name)


def add_span_attributes(span: Span, attributes: dict[str, Any]) -> None:
    """Set attributes on a span, skipping None values.

    Lists and dicts are stringified; OpenTelemetry only accepts primitives.
    """
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, (list, dict)):
            value = str(value)
        span.set_attribute(key, value)


def record_exception_in_span(span: Span, exception: Exception) -> None:
    span.record_exception(exception)
    span.set_status(Status(StatusCode.ERROR, str(exception)))


@contextmanager
def operation_span(name: str, **attributes: Any) -> Generator[Span, None, None]:
    """Run a block as the named operation.

    ``operation_var`` holds ``name`` for the duration of the block, so log
    lines emitted inside carry it. Exceptions are recorded on the span and
    re-raised; expected rejections such as ``AlreadyClaimed`` mark the span
    as an error too, which is what makes conflict bursts visible.

    Example:
        ```python
        with operation_span("release", idea_id=idea_id, user_id=user_id):
            ...
        ```
    """
    token = operation_var.set(name)
    try:
        with get_tracer().start_as_current_span(name, record_exception=False) as span:
            add_span_attributes(span, attributes)
            add_span_attributes(
                span, {f"context.{key}": value for key, value in get_request_context().items()}
            )
            try:
                yield span
            except Exception as exc:
                record_exception_in_span(span, exc)
                raise
    finally:
        operation_var.reset(token)


__all__ = [
    "initialize_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "add_span_attributes",
    "record_exception_in_span",
    "operation_span",
]
