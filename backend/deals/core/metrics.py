"""
Prometheus metrics for the deals backend.

Metrics Categories:
- RED Metrics: HTTP rate, errors, duration
- Catalog Metrics: cache hits/misses/errors, ranking scores, repository failures
- Resource Metrics: process host CPU and memory

Naming follows Prometheus conventions (_total for counters, _seconds for durations).
"""
import psutil
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    REGISTRY,
    CONTENT_TYPE_LATEST,
)

from deals.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_errors_total = Counter(
    "http_errors_total",
    "Total number of HTTP errors",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=registry,
)

# ============================================================================
# CATALOG METRICS
# ============================================================================

cache_hits_total = Counter(
    "cache_hits_total",
    "Total number of cache hits",
    ["cache_type"],  # "products", "search", "top_ranked"
    registry=registry,
)

cache_misses_total = Counter(
    "cache_misses_total",
    "Total number of cache misses",
    ["cache_type"],
    registry=registry,
)

cache_errors_total = Counter(
    "cache_errors_total",
    "Total number of cache backend errors",
    ["operation"],  # "get", "set", "delete"
    registry=registry,
)

ranking_score_distribution = Histogram(
    "ranking_score_distribution",
    "Distribution of composite product scores",
    buckets=[0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
    registry=registry,
)

repository_errors_total = Counter(
    "repository_errors_total",
    "Total number of product repository failures",
    ["operation"],  # "query", "insert"
    registry=registry,
)

# ============================================================================
# RESOURCE METRICS
# ============================================================================

system_cpu_usage_percent = Gauge(
    "system_cpu_usage_percent",
    "System CPU usage percentage",
    registry=registry,
)

system_memory_usage_bytes = Gauge(
    "system_memory_usage_bytes",
    "System memory usage in bytes",
    registry=registry,
)


def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path for metrics labels.

    Examples:
        /products?page=2 -> /products
        /products/top -> /products/top
    """
    if "?" in path:
        path = path.split("?")[0]
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record HTTP request metrics (RED metrics)."""
    normalized_endpoint = normalize_endpoint(endpoint)

    http_requests_total.labels(
        method=method,
        endpoint=normalized_endpoint,
        status=str(status_code),
    ).inc()

    if status_code >= 400:
        http_errors_total.labels(
            method=method,
            endpoint=normalized_endpoint,
            status_code=str(status_code),
        ).inc()

    http_request_duration_seconds.labels(
        method=method,
        endpoint=normalized_endpoint,
    ).observe(duration_seconds)


def record_cache_hit(cache_type: str) -> None:
    cache_hits_total.labels(cache_type=cache_type).inc()


def record_cache_miss(cache_type: str) -> None:
    cache_misses_total.labels(cache_type=cache_type).inc()


def record_cache_error(operation: str) -> None:
    cache_errors_total.labels(operation=operation).inc()


def record_ranking_score(score: float) -> None:
    """Record a composite score (0.0 to 1.0) for distribution analysis."""
    ranking_score_distribution.observe(score)


def record_repository_error(operation: str) -> None:
    repository_errors_total.labels(operation=operation).inc()


def update_resource_metrics() -> None:
    """Refresh CPU and memory gauges (called when metrics are scraped)."""
    try:
        system_cpu_usage_percent.set(psutil.cpu_percent(interval=0.1))
        system_memory_usage_bytes.set(psutil.virtual_memory().used)
    except Exception as e:
        logger.warning(
            "metrics_resource_update_failed",
            error=str(e),
            error_type=type(e).__name__,
        )


def get_metrics() -> bytes:
    """Get Prometheus metrics in text exposition format."""
    update_resource_metrics()
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
