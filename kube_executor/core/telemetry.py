from typing import Dict
import functools
import asyncio
import logging

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from kube_executor.core.config import TelemetrySettings

# Configure logging at module level
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


# Global flag to ensure initialization only happens once
_initialized = False
_tracer = None


def _parse_headers(raw: str) -> Dict[str, str]:
    """Parse the OTEL `key=value,key=value` header format."""
    headers = {}
    for item in raw.split(","):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        headers[key.strip()] = value.strip()
    return headers


def _initialize_telemetry():
    """Initialize telemetry once and only once."""
    global _initialized, _tracer

    if _initialized:
        return

    telemetry = TelemetrySettings()

    # Only install an exporting provider when an endpoint is configured,
    # otherwise spans go to the default no-op provider.
    if telemetry.otel_exporter_otlp_endpoint:
        resource = Resource(attributes={SERVICE_NAME: telemetry.otel_service_name})
        provider = TracerProvider(resource=resource)
        exporter = OTLPSpanExporter(
            endpoint=telemetry.otel_exporter_otlp_endpoint,
            headers=_parse_headers(telemetry.otel_exporter_otlp_headers or ""),
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)

    _tracer = trace.get_tracer(telemetry.otel_service_name)
    _initialized = True


def get_tracer() -> trace.Tracer:
    """Get the package tracer. Ensures telemetry is initialized."""
    if not _initialized:
        _initialize_telemetry()
    return _tracer


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance. Ensures telemetry is initialized.
    Use this instead of logging.getLogger() directly.
    """
    if not _initialized:
        _initialize_telemetry()
    return logging.getLogger(name)


# Custom decorator for automatic span naming
def trace_span(func):
    """Decorator that automatically creates a span with the function name."""

    def _span_name(args) -> str:
        if args and hasattr(args[0], "__class__"):
            # If it's a method, include class name
            return f"{args[0].__class__.__name__}.{func.__name__}"
        return func.__name__

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        with get_tracer().start_as_current_span(_span_name(args)):
            return func(*args, **kwargs)

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        with get_tracer().start_as_current_span(_span_name(args)):
            return await func(*args, **kwargs)

    # Return appropriate wrapper based on function type
    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    else:
        return sync_wrapper
