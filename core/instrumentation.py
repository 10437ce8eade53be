"""
OpenTelemetry instrumentation setup.

This module configures OpenTelemetry for distributed tracing. Export is
only configured when an OTLP endpoint is set; otherwise the API's default
no-op provider stays in place.
"""

import logging

from django.conf import settings
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.django import DjangoInstrumentor
from opentelemetry.instrumentation.psycopg2 import Psycopg2Instrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode

logger = logging.getLogger(__name__)

__all__ = ["Status", "StatusCode", "get_tracer", "setup_opentelemetry"]


def setup_opentelemetry() -> bool:
    """
    Configure OpenTelemetry instrumentation.

    Sets up:
    - Distributed tracing exported via OTLP
    - Auto-instrumentation for Django, PostgreSQL, Redis

    Returns:
        True if tracing export was configured
    """
    endpoint = getattr(settings, "OTEL_EXPORTER_OTLP_ENDPOINT", "")
    if not endpoint:
        logger.info("OTEL_EXPORTER_OTLP_ENDPOINT not set, tracing export disabled")
        return False

    resource = Resource.create(
        {
            "service.name": getattr(settings, "OTEL_SERVICE_NAME", "ip-licensing-service"),
            "service.version": "1.0.0",
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
    trace.set_tracer_provider(provider)

    DjangoInstrumentor().instrument()
    Psycopg2Instrumentor().instrument()
    RedisInstrumentor().instrument()

    logger.info("OpenTelemetry instrumentation configured", extra={"endpoint": endpoint})
    return True


def get_tracer(name: str) -> trace.Tracer:
    """
    Get a tracer instance for manual instrumentation.

    Args:
        name: Tracer name (usually module name)

    Returns:
        Tracer instance
    """
    return trace.get_tracer(name)
