import logging
import structlog
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

# OpenTelemetry
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from shared.config import settings

# Health probes and metric scrapes are neither traced nor measured
UNTRACED_URLS = "/metrics,.*/health"

# 1. Structlog processor: stamps the active trace/span onto each event
def add_otel_ids(logger, log_method, event_dict):
    span = trace.get_current_span()
    if span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = trace.format_trace_id(ctx.trace_id)
        event_dict["span_id"] = trace.format_span_id(ctx.span_id)
    return event_dict

# 2. JSON logs on stdout, filtered at LOG_LEVEL
def configure_logging(service_name: str):
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_otel_ids,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)

# 3. Tracing; spans are only exported when OTEL_ENABLED
def configure_tracing(app: FastAPI, service_name: str, service_version: str):
    resource = Resource.create({SERVICE_NAME: service_name, SERVICE_VERSION: service_version})
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)

    if settings.OTEL_ENABLED:
        exporter = OTLPSpanExporter(endpoint=settings.OTLP_ENDPOINT, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(exporter))

    # Instrumenting the root app covers the mounted order/cart apps too
    FastAPIInstrumentor.instrument_app(app, excluded_urls=UNTRACED_URLS)

    # Gateway calls become child spans of the checkout/webhook request
    HTTPXClientInstrumentor().instrument()

# 4. Prometheus: HTTP latency/status series plus the domain counters in metrics.py, served at /metrics
def configure_metrics(app: FastAPI):
    Instrumentator(
        should_group_status_codes=False,
        excluded_handlers=["/metrics", ".*/health"],
    ).instrument(app).expose(app, include_in_schema=False)

def setup_observability(app: FastAPI, service_name: str, service_version: str = "unknown"):
    """
    Bootstraps logging, tracing and metrics. Call once, on the root app only;
    the mounted sub-apps are covered by it.
    """
    configure_logging(service_name)
    configure_tracing(app, service_name, service_version)
    configure_metrics(app)
