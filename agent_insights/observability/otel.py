"""OpenTelemetry + Prometheus fallback wiring for the ingestion pipeline."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from agent_insights import config

logger = logging.getLogger("agent_insights.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_scan_counter: Any | None = None
_scan_latency_hist: Any | None = None
_cache_counter: Any | None = None
_parser_failure_counter: Any | None = None

_prom_enabled = False
_prom_scan_counter: Any | None = None
_prom_scan_latency_hist: Any | None = None
_prom_cache_counter: Any | None = None
_prom_parser_failure_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _label(value: str) -> str:
    return (value or "").strip() or "unknown"


def _start_prometheus() -> None:
    global _prom_enabled, _prom_scan_counter, _prom_scan_latency_hist
    global _prom_cache_counter, _prom_parser_failure_counter

    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(config.PROM_PORT)
        _prom_scan_counter = Counter(
            "agent_insights_scans_total",
            "Count of agent log scans",
            ["agent", "result"],
        )
        _prom_scan_latency_hist = Histogram(
            "agent_insights_scan_latency_ms",
            "Latency of agent log scans",
            ["agent", "result"],
        )
        _prom_cache_counter = Counter(
            "agent_insights_cache_lookups_total",
            "File cache lookups by outcome",
            ["agent", "outcome"],
        )
        _prom_parser_failure_counter = Counter(
            "agent_insights_parser_failures_total",
            "Count of log files that could not be parsed",
            ["agent"],
        )
        _prom_enabled = True
        logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Prometheus fallback not started: %s", exc)
        _prom_enabled = False


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _scan_counter, _scan_latency_hist, _cache_counter, _parser_failure_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (AGENT_INSIGHTS_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "agent-insights"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "agent-insights",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("agent_insights")

    _scan_counter = meter.create_counter(
        "agent_insights_scans_total",
        unit="1",
        description="Count of agent log scans",
    )
    _scan_latency_hist = meter.create_histogram(
        "agent_insights_scan_latency_ms",
        unit="ms",
        description="Latency of agent log scans",
    )
    _cache_counter = meter.create_counter(
        "agent_insights_cache_lookups_total",
        unit="1",
        description="File cache lookups by outcome",
    )
    _parser_failure_counter = meter.create_counter(
        "agent_insights_parser_failures_total",
        unit="1",
        description="Count of log files that could not be parsed",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("agent_insights")
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        _start_prometheus()

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception as exc:  # noqa: BLE001
        logger.debug("FastAPI uninstrument failed: %s", exc)
    for provider in (_meter_provider, _trace_provider):
        if provider is None:
            continue
        try:
            provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed: %s", exc)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_scan(agent: str, result: str, duration_ms: float) -> None:
    labels = {"agent": _label(agent), "result": _label(result)}
    latency = max(0.0, float(duration_ms))
    if _enabled and _scan_counter is not None:
        _scan_counter.add(1, labels)
    if _enabled and _scan_latency_hist is not None:
        _scan_latency_hist.record(latency, labels)
    if _prom_enabled and _prom_scan_counter is not None:
        _prom_scan_counter.labels(**labels).inc()
    if _prom_enabled and _prom_scan_latency_hist is not None:
        _prom_scan_latency_hist.labels(**labels).observe(latency)


def record_cache_result(agent: str, *, hits: int, misses: int) -> None:
    for outcome, count in (("hit", hits), ("miss", misses)):
        safe_count = max(0, int(count))
        if safe_count == 0:
            continue
        labels = {"agent": _label(agent), "outcome": outcome}
        if _enabled and _cache_counter is not None:
            _cache_counter.add(safe_count, labels)
        if _prom_enabled and _prom_cache_counter is not None:
            _prom_cache_counter.labels(**labels).inc(safe_count)


def record_parser_failure(agent: str) -> None:
    labels = {"agent": _label(agent)}
    if _enabled and _parser_failure_counter is not None:
        _parser_failure_counter.add(1, labels)
    if _prom_enabled and _prom_parser_failure_counter is not None:
        _prom_parser_failure_counter.labels(**labels).inc()
