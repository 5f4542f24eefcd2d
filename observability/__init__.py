"""Observability package for the node documentation index."""

from .logging import setup_logging, JSONFormatter, ColoredFormatter
from .prometheus_metrics import (
    node_docs_registry,
    record_page_fetch,
    record_cache_lookup,
    record_parse_duration,
    record_store_write,
    record_backend_fallback,
    record_search_metrics,
    set_app_info,
    get_metrics_summary,
    render_metrics
)

__all__ = [
    'setup_logging',
    'JSONFormatter',
    'ColoredFormatter',
    'node_docs_registry',
    'record_page_fetch',
    'record_cache_lookup',
    'record_parse_duration',
    'record_store_write',
    'record_backend_fallback',
    'record_search_metrics',
    'set_app_info',
    'get_metrics_summary',
    'render_metrics'
]
