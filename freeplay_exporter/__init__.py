"""
Freeplay exporter for OpenTelemetry.

Records Vercel AI SDK text generation spans as Freeplay completions.

Basic Usage:
    from opentelemetry.sdk.trace import TracerProvider
    from freeplay_exporter import FreeplaySpanExporter, FreeplaySpanProcessor

    # Reads FREEPLAY_PROJECT_ID, FREEPLAY_API_KEY and FREEPLAY_ENVIRONMENT
    exporter = FreeplaySpanExporter()

    provider = TracerProvider()
    provider.add_span_processor(FreeplaySpanProcessor(exporter))

    # before the host is suspended
    provider.force_flush()
"""

from freeplay_exporter.exporter import (
    ExportError,
    FreeplaySpanExporter,
    FreeplaySpanProcessor,
)
from freeplay_exporter.payload import (
    RECOGNIZED_SPAN_NAMES,
    InvalidSpanError,
    InvalidTraceId,
    build_completion_payload,
    extract_inputs,
    format_trace_id_to_uuid,
)
from freeplay_exporter.request import APIError
from freeplay_exporter.types import CompletionPayload, ExportResult, Message
from freeplay_exporter.version import VERSION

__version__ = VERSION

__all__ = [
    "FreeplaySpanExporter",
    "FreeplaySpanProcessor",
    "ExportResult",
    "ExportError",
    "APIError",
    "InvalidTraceId",
    "InvalidSpanError",
    "RECOGNIZED_SPAN_NAMES",
    "format_trace_id_to_uuid",
    "extract_inputs",
    "build_completion_payload",
    "CompletionPayload",
    "Message",
]
