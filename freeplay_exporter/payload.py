"""
Translation of Vercel AI SDK spans into Freeplay completion payloads.

Only the two low-level model call spans emitted by the AI SDK are recognized:

    ai.generateText.doGenerate
    ai.streamText.doStream

Everything else in a batch is ignored.
"""

import json
from typing import Any, Dict, List, Mapping, Optional

from opentelemetry.sdk.trace import ReadableSpan

from freeplay_exporter.types import CompletionPayload, InputsMap, Message


class AISDKAttributes:
    # Span names
    GENERATE_TEXT_SPAN = "ai.generateText.doGenerate"
    STREAM_TEXT_SPAN = "ai.streamText.doStream"

    # Set through `experimental_telemetry: { functionId }`
    FUNCTION_ID = "ai.telemetry.functionId"

    # JSON encoded list of {role, content}
    PROMPT_MESSAGES = "ai.prompt.messages"
    RESPONSE_TEXT = "ai.response.text"

    # Set through `experimental_telemetry: { metadata: { inputs: {...} } }`
    INPUTS_PREFIX = "ai.telemetry.metadata.inputs."


RECOGNIZED_SPAN_NAMES = (
    AISDKAttributes.GENERATE_TEXT_SPAN,
    AISDKAttributes.STREAM_TEXT_SPAN,
)

TRACE_ID_LENGTH = 32


class InvalidTraceId(ValueError):
    pass


class InvalidSpanError(ValueError):
    """A recognized span is missing data needed to build a completion."""

    pass


def is_recognized_span(span: ReadableSpan) -> bool:
    return span.name in RECOGNIZED_SPAN_NAMES


def format_trace_id_to_uuid(trace_id: str) -> str:
    """Formats a 32 character hex trace id as a 8-4-4-4-12 UUID string.

    The characters are only sliced and joined, so the result maps back to the
    trace id by removing the hyphens.
    """
    if len(trace_id) != TRACE_ID_LENGTH:
        raise InvalidTraceId(
            "Invalid traceId length; expected %d characters, got %d"
            % (TRACE_ID_LENGTH, len(trace_id))
        )
    return "-".join(
        [
            trace_id[0:8],
            trace_id[8:12],
            trace_id[12:16],
            trace_id[16:20],
            trace_id[20:],
        ]
    )


def trace_id_hex(span: ReadableSpan) -> str:
    """Returns the span's trace id as lowercase hex."""
    context = span.context
    if context is None:
        raise InvalidTraceId("Span has no trace context")
    trace_id = context.trace_id
    if isinstance(trace_id, int):
        return format(trace_id, "032x")
    return str(trace_id)


def session_id_for_span(span: ReadableSpan) -> str:
    return format_trace_id_to_uuid(trace_id_hex(span))


def extract_inputs(attributes: Optional[Mapping[str, Any]]) -> InputsMap:
    """Collects `ai.telemetry.metadata.inputs.*` attributes, keyed by suffix."""
    inputs: Dict[str, Any] = {}
    prefix = AISDKAttributes.INPUTS_PREFIX
    for key, value in (attributes or {}).items():
        if key.startswith(prefix) and value is not None:
            inputs[key[len(prefix) :]] = value
    return inputs


def parse_prompt_messages(raw: Any) -> List[Message]:
    if not raw:
        raise InvalidSpanError("Missing %s" % AISDKAttributes.PROMPT_MESSAGES)
    try:
        messages = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as e:
        raise InvalidSpanError(
            "Failed to parse %s: %s" % (AISDKAttributes.PROMPT_MESSAGES, e)
        )
    if not isinstance(messages, list):
        raise InvalidSpanError(
            "Expected %s to be a JSON array, got %s"
            % (AISDKAttributes.PROMPT_MESSAGES, type(messages).__name__)
        )
    return messages


def build_completion_payload(
    attributes: Optional[Mapping[str, Any]], environment: str
) -> CompletionPayload:
    """
    Build the completion payload for a recognized span.

    Args:
        attributes: The span attributes.
        environment: Freeplay environment name echoed into `prompt_info`.

    Raises:
        InvalidSpanError: if the function id or prompt messages are missing,
            or the prompt messages are not a JSON array.
    """
    attrs = attributes or {}

    function_id = attrs.get(AISDKAttributes.FUNCTION_ID)
    if not function_id:
        raise InvalidSpanError("Missing %s" % AISDKAttributes.FUNCTION_ID)

    messages = parse_prompt_messages(attrs.get(AISDKAttributes.PROMPT_MESSAGES))

    response_text = attrs.get(AISDKAttributes.RESPONSE_TEXT)
    if response_text:
        messages.append({"role": "assistant", "content": str(response_text)})

    return {
        "messages": messages,
        "inputs": extract_inputs(attrs),
        "prompt_info": {
            "prompt_template_version_id": function_id,
            "environment": environment,
        },
    }
