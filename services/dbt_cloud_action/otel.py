# otel.py
import os
import sys
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

USE_CLOUD_TRACE = os.getenv("USE_CLOUD_TRACE", "false").lower() == "true"
USE_CONSOLE_TRACE = os.getenv("OTEL_CONSOLE_TRACE", "false").lower() == "true"

_provider: Optional[TracerProvider] = None

def init_tracing(service_name: str, service_version: str = "v1"):
    global _provider
    if _provider is None:
        resource = Resource.create({
            "service.name": service_name,
            "service.version": service_version,
            "deployment.environment": os.getenv("ENVIRONMENT", "ci"),
        })
        provider = TracerProvider(resource=resource)
        if USE_CLOUD_TRACE:
            # pip: opentelemetry-exporter-gcp-trace
            from opentelemetry.exporter.cloud_trace import CloudTraceSpanExporter
            provider.add_span_processor(BatchSpanProcessor(CloudTraceSpanExporter()))
        elif USE_CONSOLE_TRACE:
            # stdout carries workflow commands; keep spans off it
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))
        # Without an exporter spans still carry ids, which jlog stamps on records
        trace.set_tracer_provider(provider)
        _provider = provider

    return trace.get_tracer(service_name)

def flush_tracing() -> None:
    if _provider is not None:
        _provider.force_flush()
