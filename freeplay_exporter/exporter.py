"""
Freeplay SpanExporter for OpenTelemetry.

Translates Vercel AI SDK text generation spans into Freeplay completions.
Every completion is posted on a worker thread and tracked until it settles, so
short-lived hosts (serverless functions, CLI scripts) can call `force_flush()`
or `shutdown()` before they are suspended and nothing is lost in flight.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Callable, List, Optional, Sequence, Set, Tuple

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import (
    SimpleSpanProcessor,
    SpanExporter,
    SpanExportResult,
)

from freeplay_exporter.payload import (
    InvalidSpanError,
    InvalidTraceId,
    build_completion_payload,
    is_recognized_span,
    session_id_for_span,
)
from freeplay_exporter.request import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT,
    post_completion,
)
from freeplay_exporter.types import CompletionPayload, ExportResult
from freeplay_exporter.utils import from_env, remove_trailing_slash

FREEPLAY_PROJECT_ID = "FREEPLAY_PROJECT_ID"
FREEPLAY_API_KEY = "FREEPLAY_API_KEY"
FREEPLAY_ENVIRONMENT = "FREEPLAY_ENVIRONMENT"
FREEPLAY_BASE_URL = "FREEPLAY_BASE_URL"

DEFAULT_MAX_WORKERS = 10

ResultCallback = Callable[[ExportResult], None]


class ExportError(Exception):
    def __init__(self, failed_count: int):
        self.failed_count = failed_count
        super().__init__("Failed to export %d span(s)" % failed_count)


class _BatchResult:
    """Counts down the deliveries of one `export()` call."""

    def __init__(self, size: int, on_done: Callable[[ExportResult], None]):
        self._remaining = size
        self._failed = 0
        self._lock = Lock()
        self._on_done = on_done

    def settle(self, failed: bool) -> None:
        with self._lock:
            self._remaining -= 1
            if failed:
                self._failed += 1
            done = self._remaining == 0
            failed_count = self._failed

        if done:
            if failed_count:
                self._on_done(ExportResult.failed(ExportError(failed_count)))
            else:
                self._on_done(ExportResult.ok())


class FreeplaySpanExporter(SpanExporter):
    """
    OpenTelemetry SpanExporter that records AI SDK generations in Freeplay.

    Each `ai.generateText.doGenerate` / `ai.streamText.doStream` span becomes
    one completion in the session derived from the span's trace id. Other spans
    are ignored.

    Usage:
        from opentelemetry.sdk.trace import TracerProvider
        from freeplay_exporter import FreeplaySpanExporter, FreeplaySpanProcessor

        exporter = FreeplaySpanExporter(
            project_id="...", api_key="...", environment="prod"
        )
        provider = TracerProvider()
        provider.add_span_processor(FreeplaySpanProcessor(exporter))

        ...

        # before the function returns; waits for in-flight deliveries
        provider.force_flush()

    The stock SimpleSpanProcessor and BatchSpanProcessor never call the
    exporter's force_flush. With those, call `exporter.force_flush()` directly.
    """

    log = logging.getLogger("freeplay_exporter")

    def __init__(
        self,
        project_id: Optional[str] = None,
        api_key: Optional[str] = None,
        environment: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
        max_workers: int = DEFAULT_MAX_WORKERS,
        on_error: Optional[Callable[[Exception, CompletionPayload], None]] = None,
        debug: bool = False,
    ):
        """
        Initialize the Freeplay span exporter.

        Args:
            project_id: Freeplay project id. Falls back to FREEPLAY_PROJECT_ID.
            api_key: Freeplay API key. Falls back to FREEPLAY_API_KEY.
            environment: Environment recorded with every completion (e.g. "prod").
                Falls back to FREEPLAY_ENVIRONMENT.
            base_url: API base URL. Falls back to FREEPLAY_BASE_URL, then
                https://app.freeplay.ai/api/v2.
            timeout: Request timeout in seconds. This is the only bound on how
                long `force_flush()` can wait.
            max_workers: Maximum number of concurrent deliveries.
            on_error: Called with (exception, payload) for every failed delivery.
            debug: Enable debug logging.
        """
        self.project_id = from_env(project_id, FREEPLAY_PROJECT_ID)
        self.api_key = from_env(api_key, FREEPLAY_API_KEY)
        self.environment = from_env(environment, FREEPLAY_ENVIRONMENT)
        self.base_url = remove_trailing_slash(
            from_env(base_url, FREEPLAY_BASE_URL, DEFAULT_BASE_URL)
        )

        missing = [
            name
            for name, value in (
                ("project_id", self.project_id),
                ("api_key", self.api_key),
                ("environment", self.environment),
            )
            if not value
        ]
        if missing:
            raise ValueError(
                "FreeplaySpanExporter requires %s" % ", ".join(missing)
            )

        self.timeout = timeout
        self.on_error = on_error
        self.debug = debug

        if debug:
            logging.basicConfig()
            self.log.setLevel(logging.DEBUG)
        else:
            self.log.setLevel(logging.WARNING)

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="freeplay-exporter"
        )
        # Deliveries issued by export() that have not settled yet.
        self._pending: Set[Future] = set()
        self._lock = Lock()

    def export(
        self,
        spans: Sequence[ReadableSpan],
        result_callback: Optional[ResultCallback] = None,
    ) -> SpanExportResult:
        """
        Post a completion for every recognized span in the batch.

        Returns immediately without waiting on the network. When given,
        `result_callback` is called exactly once with the outcome of the whole
        batch: right away if nothing in the batch needed delivering, otherwise
        from the worker thread that settles the last delivery.

        Malformed spans are logged and dropped; they never fail the batch.
        """
        deliveries = self._prepare(spans)

        if not deliveries:
            self._report(result_callback, ExportResult.ok())
            return SpanExportResult.SUCCESS

        batch = _BatchResult(
            len(deliveries), lambda result: self._report(result_callback, result)
        )
        for span_name, session_id, payload in deliveries:
            self._issue(span_name, session_id, payload, batch)

        return SpanExportResult.SUCCESS

    def force_flush(self, timeout_millis: Optional[int] = None) -> bool:
        """
        Wait for every delivery in flight at call time to settle.

        Without a timeout this waits as long as the deliveries take; each one is
        bounded by the request timeout. Returns False if `timeout_millis`
        elapsed first.
        """
        with self._lock:
            pending = list(self._pending)

        if not pending:
            return True

        self.log.debug("flushing %d pending deliveries", len(pending))
        timeout = timeout_millis / 1000.0 if timeout_millis is not None else None
        _, not_done = wait(pending, timeout=timeout)
        if not_done:
            self.log.warning(
                "%d deliveries still pending after %sms", len(not_done), timeout_millis
            )
            return False
        return True

    def shutdown(self) -> None:
        """Flush pending deliveries and forget them. Safe to call more than once."""
        self.force_flush()
        with self._lock:
            self._pending.clear()
        self.log.debug("Freeplay exporter shutdown")

    def _prepare(
        self, spans: Sequence[ReadableSpan]
    ) -> List[Tuple[str, str, CompletionPayload]]:
        deliveries = []
        for span in spans:
            try:
                delivery = self._prepare_span(span)
            except Exception as e:
                self.log.warning(f"Failed to export span '{span.name}': {e}")
                continue
            if delivery:
                deliveries.append(delivery)
        return deliveries

    def _prepare_span(
        self, span: ReadableSpan
    ) -> Optional[Tuple[str, str, CompletionPayload]]:
        if not is_recognized_span(span):
            return None

        try:
            session_id = session_id_for_span(span)
        except InvalidTraceId as e:
            self.log.warning(
                "Skipping span %s due to invalid traceId: %s", span.name, e
            )
            return None

        try:
            payload = build_completion_payload(span.attributes, self.environment)
        except InvalidSpanError as e:
            self.log.warning("Skipping span %s: %s", span.name, e)
            return None

        return span.name, session_id, payload

    def _issue(
        self,
        span_name: str,
        session_id: str,
        payload: CompletionPayload,
        batch: _BatchResult,
    ) -> None:
        handle: Future = Future()
        with self._lock:
            self._pending.add(handle)

        try:
            self._executor.submit(
                self._deliver, handle, span_name, session_id, payload, batch
            )
        except RuntimeError as e:
            # The interpreter is shutting down and no new threads can start.
            self.log.error("Failed to export span %s to Freeplay: %s", span_name, e)
            self._settle(handle, batch, failed=True)

    def _deliver(
        self,
        handle: Future,
        span_name: str,
        session_id: str,
        payload: CompletionPayload,
        batch: _BatchResult,
    ) -> None:
        failed = True
        try:
            post_completion(
                self.api_key,
                self.base_url,
                self.project_id,
                session_id,
                payload,
                timeout=self.timeout,
            )
            failed = False
        except Exception as e:
            self.log.error(
                "Failed to export span %s to Freeplay: %s", span_name, e
            )
            self._notify_error(e, payload)
        finally:
            self._settle(handle, batch, failed)

    def _settle(self, handle: Future, batch: _BatchResult, failed: bool) -> None:
        with self._lock:
            self._pending.discard(handle)
        try:
            batch.settle(failed)
        finally:
            # Resolved last so force_flush() returns only once the batch is counted.
            handle.set_result(not failed)

    def _notify_error(self, error: Exception, payload: CompletionPayload) -> None:
        if not self.on_error:
            return
        try:
            self.on_error(error, payload)
        except Exception as e:
            self.log.exception(f"Error in on_error callback: {e}")

    def _report(
        self, result_callback: Optional[ResultCallback], result: ExportResult
    ) -> None:
        if result_callback is None:
            return
        try:
            result_callback(result)
        except Exception as e:
            self.log.exception(f"Error in export result callback: {e}")


class FreeplaySpanProcessor(SimpleSpanProcessor):
    """
    SimpleSpanProcessor whose `force_flush()` waits for the exporter's
    in-flight deliveries, so `provider.force_flush()` is enough before a
    short-lived host is suspended.
    """

    def __init__(self, span_exporter: FreeplaySpanExporter):
        super().__init__(span_exporter)
        self._freeplay_exporter = span_exporter

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._freeplay_exporter.force_flush(timeout_millis)
