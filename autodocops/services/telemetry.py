"""OpenTelemetry export of generation, search and chat operations"""

import json
import logging
import time
from typing import Any

from opentelemetry import trace
from opentelemetry._logs import SeverityNumber, set_logger_provider
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from autodocops.config import config

logger = logging.getLogger(__name__)

# Bounded value sets, safe as record attributes
_ATTRIBUTE_PARAMS = ("artifact_type", "language", "limit", "threshold", "source_kind")

_BODY_TEXT_LIMIT = 200

_SEVERITIES = (
    (logging.CRITICAL, SeverityNumber.FATAL),
    (logging.ERROR, SeverityNumber.ERROR),
    (logging.WARNING, SeverityNumber.WARN),
    (logging.INFO, SeverityNumber.INFO),
)


def _signal_endpoint(base: str, signal: str) -> str:
    """Append the OTLP path for a signal unless the base already ends with it"""
    suffix = f"/v1/{signal}"
    if base.endswith(suffix):
        return base
    return base.rstrip("/") + suffix


def severity_for(level: int) -> SeverityNumber:
    for threshold, severity in _SEVERITIES:
        if level >= threshold:
            return severity
    return SeverityNumber.DEBUG


def _attribute_value(value: Any) -> str | int | float | bool:
    value = getattr(value, "value", value)
    if isinstance(value, bool | int | float):
        return value
    return str(value)


class TelemetryService:
    """Emits one OTel log record per boundary operation and wires up span export"""

    def __init__(self):
        self.logging_enabled = config.otel_logging_enabled
        self.tracing_enabled = config.otel_tracing_enabled
        self.logger_provider: LoggerProvider | None = None
        self.tracer_provider: TracerProvider | None = None
        self.otel_logger = None

        resource = Resource(
            attributes={
                SERVICE_NAME: config.otel_service_name,
                SERVICE_VERSION: config.otel_service_version,
            }
        )
        if self.logging_enabled:
            self.logging_enabled = self._setup("logging", self._start_log_export, resource)
        if self.tracing_enabled:
            self.tracing_enabled = self._setup("tracing", self._start_span_export, resource)

    @staticmethod
    def _setup(name: str, start, resource: Resource) -> bool:
        try:
            start(resource)
        except Exception as e:
            logger.warning(f"OTel {name} unavailable, continuing without it: {e}")
            return False
        return True

    def _start_log_export(self, resource: Resource) -> None:
        endpoint = _signal_endpoint(config.otel_endpoint, "logs")
        provider = LoggerProvider(resource=resource)
        exporter = OTLPLogExporter(endpoint=endpoint)
        provider.add_log_record_processor(BatchLogRecordProcessor(exporter))
        set_logger_provider(provider)
        self.logger_provider = provider
        self.otel_logger = provider.get_logger(__name__)
        logger.info(f"Exporting operation logs to {endpoint}")

    def _start_span_export(self, resource: Resource) -> None:
        endpoint = _signal_endpoint(config.otel_endpoint, "traces")
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        trace.set_tracer_provider(provider)
        self.tracer_provider = provider
        logger.info(f"Exporting spans to {endpoint}")

    def build_attributes(
        self,
        operation: str,
        parameters: dict[str, Any],
        response: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> dict[str, str | int | float | bool]:
        """Collect the low-cardinality attributes describing one operation.

        Query text and project ids are left out; they belong in the record body.
        """
        attributes: dict[str, str | int | float | bool] = {
            "autodocops.operation": operation,
            "response.success": error is None,
        }
        attributes.update(
            {
                f"param.{name}": _attribute_value(parameters[name])
                for name in _ATTRIBUTE_PARAMS
                if parameters.get(name) is not None
            }
        )

        response = response or {}
        if response:
            attributes["response.size_bytes"] = len(json.dumps(response, default=str))
        if "from_cache" in response:
            attributes["response.from_cache"] = bool(response["from_cache"])
        if "duration_ms" in response:
            attributes["response.duration_ms"] = float(response["duration_ms"])
        if "results" in response:
            results = response["results"] or []
            attributes["response.result_count"] = len(results)
            top = results[0].get("similarity") if results else None
            if top is not None:
                attributes["response.top_similarity"] = float(top)

        if error is not None:
            attributes["error.type"] = type(error).__name__
            if getattr(error, "kind", None):
                attributes["error.kind"] = error.kind
        return attributes

    @staticmethod
    def _body(
        operation: str, parameters: dict[str, Any], error: Exception | None, text: str | None
    ) -> str:
        words = [f"[{operation}]", "FAILED" if error is not None else "SUCCESS"]
        if text:
            shown = text[:_BODY_TEXT_LIMIT] + "..." if len(text) > _BODY_TEXT_LIMIT else text
            words.append(f'text="{shown}"')
        if parameters.get("project_id"):
            words.append(f"project_id={parameters['project_id']}")
        if error is not None:
            words.append(f"error={type(error).__name__}")
        return " ".join(words)

    def log_operation(
        self,
        operation: str,
        parameters: dict[str, Any],
        response: dict[str, Any] | None = None,
        error: Exception | None = None,
        text: str | None = None,
    ) -> None:
        """
        Record a generate_artifact, semantic_search or semantic_chat call

        Args:
            operation: Name of the boundary operation
            parameters: Arguments it was invoked with
            response: Response summary when it succeeded
            error: Exception when it failed
            text: Free text such as a search query
        """
        if self.otel_logger is None or not self.logging_enabled:
            return

        try:
            self.otel_logger.emit(
                body=self._body(operation, parameters, error, text),
                severity_number=severity_for(logging.ERROR if error else logging.INFO),
                attributes=self.build_attributes(operation, parameters, response, error),
                timestamp=time.time_ns(),
            )
        except Exception as e:
            logger.warning(f"Dropped telemetry record for {operation}: {e}")


_service: TelemetryService | None = None
_http_instrumented = False


def instrument_http_clients() -> None:
    """Trace outgoing httpx requests; must run before any model client exists"""
    global _http_instrumented
    if _http_instrumented or not config.otel_tracing_enabled:
        return
    try:
        HTTPXClientInstrumentor().instrument()
    except Exception as e:
        logger.warning(f"httpx instrumentation failed: {e}")
        return
    _http_instrumented = True
    logger.info("Tracing outgoing httpx requests")


def get_telemetry_service() -> TelemetryService:
    """Return the process-wide telemetry service, creating it on first use"""
    global _service
    instrument_http_clients()
    if _service is None:
        _service = TelemetryService()
    return _service
