"""OpenTelemetry tracing setup.

Exports spans over OTLP gRPC when an endpoint is configured; otherwise all
tracing is a no-op.
"""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import NoOpTracerProvider

logger = logging.getLogger(__name__)

_tracer_provider: TracerProvider | NoOpTracerProvider | None = None


def init_tracing(
    *,
    service_name: str = "cadence",
    env: str = "dev",
    endpoint: str | None = "localhost:4317",
) -> TracerProvider | NoOpTracerProvider:
    """Initialize tracing; an empty endpoint yields a no-op provider."""
    global _tracer_provider  # noqa: PLW0603

    if not endpoint:
        provider: TracerProvider | NoOpTracerProvider = NoOpTracerProvider()
        trace.set_tracer_provider(provider)
        _tracer_provider = provider
        logger.info("Tracing disabled (no endpoint configured)")
        return provider

    try:
        cadence_version = pkg_version("cadence")
    except PackageNotFoundError:
        cadence_version = "0.0.0"

    resource = Resource.create(
        {
            "service.name": service_name,
            "deployment.environment": env,
            "service.version": cadence_version,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
    )
    logger.info("Tracing enabled -> %s (env=%s)", endpoint, env)

    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    return provider


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def shutdown_tracing() -> None:
    """Flush and shut down the tracer provider."""
    if isinstance(_tracer_provider, TracerProvider):
        _tracer_provider.shutdown()


__all__ = ["get_tracer", "init_tracing", "shutdown_tracing"]
