"""Prometheus metrics for the documentation index."""

from prometheus_client import Counter, Histogram, Info, generate_latest
from prometheus_client.core import CollectorRegistry
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

# Dedicated registry so embedding hosts keep their own default registry clean
node_docs_registry = CollectorRegistry()

# Fetch metrics
page_fetches = Counter(
    'node_docs_page_fetches_total',
    'Documentation page requests by outcome',
    ['outcome'],
    registry=node_docs_registry
)

cache_lookups = Counter(
    'node_docs_cache_lookups_total',
    'Documentation cache lookups',
    ['result'],
    registry=node_docs_registry
)

parse_duration = Histogram(
    'node_docs_parse_duration_seconds',
    'HTML parse duration in seconds',
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0],
    registry=node_docs_registry
)

# Store metrics
store_writes = Counter(
    'node_docs_store_writes_total',
    'Documentation records written',
    ['backend'],
    registry=node_docs_registry
)

backend_fallbacks = Counter(
    'node_docs_backend_fallbacks_total',
    'Switches from the durable backend to in-memory storage',
    registry=node_docs_registry
)

# Search metrics
search_requests = Counter(
    'node_docs_search_requests_total',
    'Semantic search requests',
    ['backend'],
    registry=node_docs_registry
)

search_duration = Histogram(
    'node_docs_search_duration_seconds',
    'Semantic search duration in seconds',
    ['backend'],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0],
    registry=node_docs_registry
)

search_results_count = Histogram(
    'node_docs_search_results_count',
    'Number of search results returned',
    ['backend'],
    buckets=[0, 1, 5, 10, 20, 50],
    registry=node_docs_registry
)

app_info = Info(
    'node_docs_app',
    'Node documentation index information',
    registry=node_docs_registry
)


def record_page_fetch(outcome: str) -> None:
    """Record a documentation page request ('success', 'not_found', 'error', 'retry')."""
    page_fetches.labels(outcome=outcome).inc()


def record_cache_lookup(hit: bool) -> None:
    cache_lookups.labels(result="hit" if hit else "miss").inc()


def record_parse_duration(duration: float) -> None:
    parse_duration.observe(duration)


def record_store_write(backend: str) -> None:
    store_writes.labels(backend=backend).inc()


def record_backend_fallback() -> None:
    backend_fallbacks.inc()


def record_search_metrics(backend: str, duration: float, result_count: int) -> None:
    """Record search-related metrics."""
    search_requests.labels(backend=backend).inc()
    search_duration.labels(backend=backend).observe(duration)
    search_results_count.labels(backend=backend).observe(result_count)


def set_app_info(version: str, backend: Optional[str] = None) -> None:
    app_info.info({'version': version, 'backend': backend or 'unknown'})


def get_metrics_summary() -> Dict[str, Any]:
    """Get a summary of current metric values."""
    summary: Dict[str, Any] = {}
    for metric in node_docs_registry.collect():
        for sample in metric.samples:
            if sample.name.endswith('_total'):
                summary[sample.name] = summary.get(sample.name, 0) + sample.value
    return summary


def render_metrics() -> bytes:
    """Prometheus text exposition of all documentation index metrics."""
    return generate_latest(node_docs_registry)
