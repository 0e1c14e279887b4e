"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics for feed paging, store failures and the rank cache

Both are initialised once at startup and injected into FastAPI via middleware.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter, Gauge, Histogram

from fitspo_feed.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
FEED_PAGE_LATENCY = Histogram(
    "feed_page_latency_seconds",
    "Time spent assembling one feed page",
    ["feed"],  # 'hot' or 'recent'
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

STORE_FETCH_ERRORS_TOTAL = Counter(
    "store_fetch_errors_total",
    "Post store page fetches that failed or timed out",
    ["order"],  # 'score' or 'recency'
)

HOT_DEDUP_DROPPED_TOTAL = Counter(
    "hot_feed_dedup_dropped_total",
    "Posts dropped from a hot page because the author already had one",
)

HOT_FALLBACK_PAGES_TOTAL = Counter(
    "hot_feed_fallback_pages_total",
    "Hot pages served in recency order because the cursor had no score key",
)

RANK_CACHE_REFRESH_TOTAL = Counter(
    "rank_cache_refresh_total",
    "Daily rank cache rebuild attempts",
    ["outcome"],  # 'rebuilt', 'snapshot' or 'failed'
)

RANK_CACHE_ENTRIES = Gauge(
    "rank_cache_entries",
    "Number of posts currently held in the daily rank cache",
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    if not settings.otel_enabled:
        logger.info("OTel tracing disabled")
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint
        )
    except Exception as exc:
        logger.warning("Could not connect to OTLP exporter: %s — traces disabled", exc)

    trace.set_tracer_provider(provider)

    RedisInstrumentor().instrument()
    SQLAlchemyInstrumentor().instrument()


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    FastAPIInstrumentor.instrument_app(app)
