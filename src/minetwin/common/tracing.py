"""OpenTelemetry tracing for the query and command pipelines."""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Status, StatusCode

from minetwin import __version__
from minetwin.common.errors import DomainError
from minetwin.common.logging import get_logger

logger = get_logger(__name__)

TRACER_NAME = "minetwin.engine"

_provider: TracerProvider | None = None


def setup_tracing(
    service_name: str = "minetwin",
    otlp_endpoint: str | None = None,
    enable_console: bool = False,
) -> trace.Tracer:
    """
    Install a tracer provider for the engine.

    Safe to call once per engine; later calls reuse the installed provider
    so repeated engine construction does not stack exporters.

    Args:
        service_name: Reported ``service.name``
        otlp_endpoint: OTLP gRPC collector (e.g. "localhost:4317")
        enable_console: Also print finished spans to stdout
    """
    global _provider

    if _provider is None:
        provider = TracerProvider(
            resource=Resource.create(
                {"service.name": service_name, "service.version": __version__}
            )
        )
        if otlp_endpoint:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

            provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
            )
            logger.info("OTLP tracing enabled", endpoint=otlp_endpoint)
        if enable_console:
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
            logger.info("Console tracing enabled")

        trace.set_tracer_provider(provider)
        _provider = provider

    return get_tracer()


def get_tracer() -> trace.Tracer:
    """Engine tracer; a no-op tracer until a provider is installed."""
    return trace.get_tracer(TRACER_NAME)


def _attribute_value(value: Any) -> Any:
    # Span attributes only take primitives and homogeneous sequences of them.
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    return str(value)


@contextmanager
def span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """
    Run a block inside a span.

    ``None`` attributes are dropped. A ``DomainError`` leaving the block is
    a rejected request rather than a fault: its code is recorded and the
    span status stays unset. Any other exception marks the span as failed.
    """
    with trace.get_tracer(TRACER_NAME).start_as_current_span(
        name, record_exception=False, set_status_on_exception=False
    ) as current_span:
        for key, value in (attributes or {}).items():
            if value is not None:
                current_span.set_attribute(key, _attribute_value(value))
        try:
            yield current_span
        except DomainError as e:
            current_span.set_attribute("minetwin.error_code", e.code)
            raise
        except Exception as e:
            current_span.set_status(Status(StatusCode.ERROR, str(e)))
            current_span.record_exception(e)
            raise


def set_span_attribute(key: str, value: Any) -> None:
    """Set an attribute on the current span, if one is recording."""
    current_span = trace.get_current_span()
    if current_span.is_recording():
        current_span.set_attribute(key, _attribute_value(value))
