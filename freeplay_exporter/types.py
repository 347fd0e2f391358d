from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TypedDict

from opentelemetry.sdk.trace.export import SpanExportResult

InputsMap = Dict[str, Any]


class Message(TypedDict):
    role: str
    content: Any


class PromptInfo(TypedDict):
    prompt_template_version_id: str
    environment: str


class CompletionPayload(TypedDict):
    """Body of a POST to the completions endpoint."""

    messages: List[Message]
    inputs: InputsMap
    prompt_info: PromptInfo


@dataclass(frozen=True)
class ExportResult:
    """Outcome of one `export()` call, handed to the result callback.

    `code` is `SpanExportResult.SUCCESS` (0) or `SpanExportResult.FAILURE` (1).
    `error` is only set on failure.
    """

    code: SpanExportResult
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.code == SpanExportResult.SUCCESS

    @classmethod
    def ok(cls) -> "ExportResult":
        return cls(code=SpanExportResult.SUCCESS)

    @classmethod
    def failed(cls, error: Exception) -> "ExportResult":
        return cls(code=SpanExportResult.FAILURE, error=error)
