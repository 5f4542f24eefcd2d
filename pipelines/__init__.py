"""Pipelines package for the node documentation index.

Provides discovery, fetching, parsing and caching of node documentation.
"""

from .crawler import DocFetcher, SourceUnavailable, RETRYABLE_STATUS_CODES
from .doc_cache import DocCache
from .html_parser import parse_documentation
from .url_patterns import (
    candidate_urls,
    display_name_from_node_type,
    documentation_url,
    node_type_from_url
)

__all__ = [
    # Fetcher
    'DocFetcher',
    'SourceUnavailable',
    'RETRYABLE_STATUS_CODES',

    # Cache
    'DocCache',

    # Parser
    'parse_documentation',

    # URL patterns
    'candidate_urls',
    'display_name_from_node_type',
    'documentation_url',
    'node_type_from_url'
]
