"""
Tracing setup for the relay service.

Spans go to an OTLP collector when ``OTLP_ENDPOINT`` is set. The ASGI
instrumentation records one span per ``send`` call, so every audio chunk of
a relayed stream would produce a span of its own; ``ChunkSpanFilter`` keeps
those out of the export.
"""

import logging
from typing import Collection, Optional, Sequence

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)

from radio_relay.vars import OTLP_ENDPOINT, OTLP_HEADER_MAP, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")

ASGI_EVENT_TYPE = "asgi.event.type"
CHUNK_EVENT_TYPES = frozenset({"http.response.body"})


class ChunkSpanFilter(SpanExporter):
    """Forwards spans to ``exporter`` except those for the given ASGI events."""

    def __init__(
        self,
        exporter: SpanExporter,
        event_types: Collection[str] = CHUNK_EVENT_TYPES,
    ):
        self.exporter = exporter
        self.event_types = frozenset(event_types)

    def _keep(self, span: ReadableSpan) -> bool:
        attributes = span.attributes or {}
        return attributes.get(ASGI_EVENT_TYPE) not in self.event_types

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        kept = [span for span in spans if self._keep(span)]
        # Batch held only chunk spans
        if not kept:
            return SpanExportResult.SUCCESS
        return self.exporter.export(kept)

    def shutdown(self) -> None:
        self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self.exporter.force_flush(timeout_millis)


def configure_tracing(endpoint: Optional[str] = OTLP_ENDPOINT) -> TracerProvider:
    provider = TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    if endpoint:
        exporter = OTLPSpanExporter(endpoint=endpoint, headers=OTLP_HEADER_MAP or None)
        provider.add_span_processor(BatchSpanProcessor(ChunkSpanFilter(exporter)))
        logger.info(f"Exporting traces to {endpoint}")
    trace.set_tracer_provider(provider)
    return provider
