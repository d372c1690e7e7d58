"""OpenTelemetry instrumentation for Storage Gateway.

Provides:
- OpenTelemetry SDK initialization with auto-instrumentation
- Tracer for creating spans with trace context
- Metrics for backend calls (duration, listed keys)
- Structured JSON logging with trace correlation
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from storage_gateway.config import get_settings

if TYPE_CHECKING:
    from collections.abc import Generator

    from fastapi import FastAPI

_initialized = False

_tracer: trace.Tracer | None = None
_meter: metrics.Meter | None = None
_tracer_provider: TracerProvider | None = None
_meter_provider: MeterProvider | None = None

_backend_duration_histogram: metrics.Histogram | None = None
_keys_listed_counter: metrics.Counter | None = None


def get_tracer() -> trace.Tracer:
    """Get the application tracer.

    Returns:
        The OpenTelemetry tracer for creating spans.
    """
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer("storage_gateway")
    return _tracer


def get_meter() -> metrics.Meter:
    """Get the application meter.

    Returns:
        The OpenTelemetry meter for creating metrics.
    """
    global _meter
    if _meter is None:
        _meter = metrics.get_meter("storage_gateway")
    return _meter


def record_backend_duration(
    duration_seconds: float, store: str, operation: str, status: str = "ok"
) -> None:
    """Record the duration of a single backend call.

    Args:
        duration_seconds: Call duration in seconds.
        store: Backend kind (db or kv).
        operation: Operation name (fetch, create, get_many, list, ...).
        status: Call outcome (ok or error).
    """
    if _backend_duration_histogram is not None:
        _backend_duration_histogram.record(
            duration_seconds, {"store": store, "operation": operation, "status": status}
        )


def record_keys_listed(count: int, namespace: str) -> None:
    """Record number of keys returned by a listing page.

    Args:
        count: Number of keys in the page.
        namespace: KV namespace the page belongs to.
    """
    if _keys_listed_counter is not None:
        _keys_listed_counter.add(count, {"namespace": namespace})


@contextmanager
def track_backend_call(store: str, operation: str) -> Generator[trace.Span, None, None]:
    """Trace and time a backend call.

    Opens a span named ``<store>.<operation>`` and records the call duration
    with its outcome when the block exits.
    """
    start = time.perf_counter()
    status = "ok"
    with get_tracer().start_as_current_span(f"{store}.{operation}") as span:
        try:
            yield span
        except Exception:
            status = "error"
            raise
        finally:
            record_backend_duration(time.perf_counter() - start, store, operation, status)


def _add_trace_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Add OpenTelemetry trace context to log records.

    Args:
        logger: The logger instance (unused but required by structlog).
        method_name: The logging method name (unused but required by structlog).
        event_dict: The event dictionary to enhance.

    Returns:
        Event dictionary with trace context added.
    """
    span = trace.get_current_span()
    ctx = span.get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def configure_logging() -> None:
    """Configure structured JSON logging with trace context."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            _add_trace_context,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=logging.INFO,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name. Defaults to "storage_gateway".

    Returns:
        A structured logger with trace context support.
    """
    return structlog.get_logger(name or "storage_gateway")


def setup_opentelemetry(app: FastAPI) -> None:
    """Initialize OpenTelemetry instrumentation.

    Sets up:
    - Tracer provider with OTLP exporter
    - Meter provider with OTLP exporter
    - FastAPI auto-instrumentation
    - Metrics for backend calls

    Args:
        app: FastAPI application to instrument.
    """
    global _initialized, _tracer, _meter, _tracer_provider, _meter_provider
    global _backend_duration_histogram, _keys_listed_counter

    if _initialized:
        return

    settings = get_settings()

    configure_logging()

    if not settings.otel.enabled:
        _initialized = True
        return

    resource = Resource.create({SERVICE_NAME: settings.otel.service_name})

    tracer_provider = TracerProvider(resource=resource)
    span_exporter = OTLPSpanExporter(
        endpoint=settings.otel.endpoint, insecure=settings.otel.insecure
    )
    tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
    trace.set_tracer_provider(tracer_provider)
    _tracer_provider = tracer_provider

    metric_exporter = OTLPMetricExporter(
        endpoint=settings.otel.endpoint, insecure=settings.otel.insecure
    )
    metric_reader = PeriodicExportingMetricReader(metric_exporter, export_interval_millis=10000)
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    _meter_provider = meter_provider

    _tracer = trace.get_tracer("storage_gateway")
    _meter = metrics.get_meter("storage_gateway")

    _backend_duration_histogram = _meter.create_histogram(
        name="backend_call_duration_seconds",
        description="Duration of storage backend calls in seconds",
        unit="s",
    )

    _keys_listed_counter = _meter.create_counter(
        name="kv_keys_listed",
        description="Total number of keys returned by KV listing pages",
        unit="keys",
    )

    FastAPIInstrumentor.instrument_app(app)

    _initialized = True


def shutdown_opentelemetry() -> None:
    """Shutdown OpenTelemetry providers to flush pending telemetry."""
    import contextlib

    global _tracer_provider, _meter_provider
    if _tracer_provider is not None:
        with contextlib.suppress(Exception):
            _tracer_provider.force_flush(timeout_millis=5000)
            _tracer_provider.shutdown()
        _tracer_provider = None
    if _meter_provider is not None:
        with contextlib.suppress(Exception):
            _meter_provider.force_flush(timeout_millis=5000)
            _meter_provider.shutdown()
        _meter_provider = None


def reset_observability() -> None:
    """Reset observability state (useful for testing)."""
    import contextlib

    global _initialized, _tracer, _meter, _tracer_provider, _meter_provider
    global _backend_duration_histogram, _keys_listed_counter

    # Uninstrument FastAPI to avoid double-instrumentation on re-setup
    with contextlib.suppress(Exception):
        FastAPIInstrumentor.uninstrument()

    _initialized = False
    _tracer = None
    _meter = None
    _tracer_provider = None
    _meter_provider = None
    _backend_duration_histogram = None
    _keys_listed_counter = None
