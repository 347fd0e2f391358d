# Freeplay exporter example
#
# This script records a fake Vercel AI SDK `ai.generateText.doGenerate` span
# and sends it to Freeplay as a completion, then flushes before exiting the
# way a serverless handler would.
#
# Setup:
# 1. Copy .env.example to .env and fill in FREEPLAY_PROJECT_ID,
#    FREEPLAY_API_KEY and FREEPLAY_ENVIRONMENT
# 2. Set FREEPLAY_FUNCTION_ID to a prompt template version id
# 3. Run this script

import json
import os

from opentelemetry.sdk.trace import TracerProvider

from freeplay_exporter import FreeplaySpanExporter, FreeplaySpanProcessor


def load_env_file():
    """Load environment variables from .env file if it exists."""
    env_path = os.path.join(os.path.dirname(__file__), ".env")
    if os.path.exists(env_path):
        with open(env_path, "r") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    os.environ.setdefault(key.strip(), value.strip())


load_env_file()


def on_result(result):
    if result.success:
        print("✅ Completion recorded")  # noqa: T201
    else:
        print(f"❌ Export failed: {result.error}")  # noqa: T201


class CallbackExporter(FreeplaySpanExporter):
    """Reports the outcome of every batch handed over by the span processor."""

    def export(self, spans, result_callback=None):
        return super().export(spans, result_callback or on_result)


exporter = CallbackExporter(debug=True)
provider = TracerProvider()
provider.add_span_processor(FreeplaySpanProcessor(exporter))
tracer = provider.get_tracer("ai")

with tracer.start_as_current_span("ai.generateText.doGenerate") as span:
    span.set_attribute(
        "ai.telemetry.functionId", os.environ.get("FREEPLAY_FUNCTION_ID", "")
    )
    span.set_attribute(
        "ai.prompt.messages",
        json.dumps(
            [
                {"role": "system", "content": "You answer in one word."},
                {"role": "user", "content": "What is the capital of France?"},
            ]
        ),
    )
    span.set_attribute("ai.response.text", "Paris")
    span.set_attribute("ai.telemetry.metadata.inputs.country", "France")

# Waits for in-flight deliveries before the process exits
provider.force_flush()
provider.shutdown()
