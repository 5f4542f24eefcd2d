"""Configuration module for the node documentation index.

Provides settings for fetching, caching, embedding and storage backends.
"""

from .database import (
    DatabaseConfig,
    create_vector_store,
    env_flag
)
from .settings import (
    DocsConfig,
    DEFAULT_PREWARM_NODE_TYPES,
    load_config
)

__all__ = [
    'DatabaseConfig',
    'create_vector_store',
    'env_flag',
    'DocsConfig',
    'DEFAULT_PREWARM_NODE_TYPES',
    'load_config'
]
