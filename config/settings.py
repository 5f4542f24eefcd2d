"""Settings for the node documentation index.

Values come from environment variables and can be overridden by a YAML
file (``NODE_DOCS_CONFIG`` or an explicit path). Example file::

    base_url: https://docs.n8n.io/integrations/builtin/
    cache_dir: /var/cache/node-docs
    prewarm_node_types:
      - n8n-nodes-base.httpRequest
    database:
      backend: postgresql
      postgres:
        host: db
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field

from .database import DatabaseConfig

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://docs.n8n.io/integrations/builtin/"
DEFAULT_NODE_LIST_URL = "https://docs.n8n.io/integrations/builtin/node-types/"
DEFAULT_USER_AGENT = "node-docs-index/0.1 (+https://docs.n8n.io)"

DEFAULT_PREWARM_NODE_TYPES = [
    # Core nodes
    "n8n-nodes-base.httpRequest",
    "n8n-nodes-base.set",
    "n8n-nodes-base.function",
    "n8n-nodes-base.if",
    "n8n-nodes-base.switch",
    "n8n-nodes-base.gmail",
    "n8n-nodes-base.webhook",
    # LangChain nodes
    "n8n-nodes-langchain.agent",
    "n8n-nodes-langchain.chainllm",
    "n8n-nodes-langchain.chainretrievalqa",
    "n8n-nodes-langchain.chainsummarization",
    "n8n-nodes-langchain.lmchatopenai",
    "n8n-nodes-langchain.vectorstorepinecone",
]


class DocsConfig(BaseModel):
    """Configuration for fetching, caching and indexing node documentation."""
    base_url: str = Field(default=DEFAULT_BASE_URL, description="Root of the per-node documentation pages")
    node_list_url: str = Field(default=DEFAULT_NODE_LIST_URL, description="Index page listing node pages")
    cache_dir: Path = Field(default=Path("cache") / "docs", description="Directory for cached records")
    vector_size: int = Field(default=512, ge=1, description="Embedding dimensionality")
    request_delay: float = Field(default=0.1, ge=0, description="Minimum seconds between requests to one host")
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    max_retries: int = Field(default=2, ge=0, description="Retries for transient fetch errors")
    retry_delay: float = Field(default=0.5, ge=0, description="Base backoff delay in seconds")
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    prewarm_node_types: List[str] = Field(default_factory=lambda: list(DEFAULT_PREWARM_NODE_TYPES))
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    @property
    def site_root(self) -> str:
        """scheme://host of the documentation site, for resolving relative links."""
        parsed = urlparse(self.base_url)
        return f"{parsed.scheme}://{parsed.netloc}"

    @classmethod
    def from_env(cls) -> 'DocsConfig':
        """Create configuration from environment variables."""
        values: Dict[str, Any] = {'database': DatabaseConfig.from_env()}

        env_map = {
            'NODE_DOCS_BASE_URL': 'base_url',
            'NODE_DOCS_INDEX_URL': 'node_list_url',
            'NODE_DOCS_CACHE_DIR': 'cache_dir',
            'NODE_DOCS_VECTOR_SIZE': 'vector_size',
            'NODE_DOCS_REQUEST_DELAY': 'request_delay',
            'NODE_DOCS_REQUEST_TIMEOUT': 'request_timeout',
            'NODE_DOCS_MAX_RETRIES': 'max_retries',
            'NODE_DOCS_RETRY_DELAY': 'retry_delay',
            'NODE_DOCS_USER_AGENT': 'user_agent',
        }
        for env_name, field_name in env_map.items():
            value = os.getenv(env_name)
            if value:
                values[field_name] = value

        prewarm = os.getenv('NODE_DOCS_PREWARM')
        if prewarm is not None:
            values['prewarm_node_types'] = [t.strip() for t in prewarm.split(',') if t.strip()]

        return cls(**values)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> DocsConfig:
    """Load settings from the environment, overlaid with an optional YAML file.

    Args:
        config_path: YAML file; defaults to ``NODE_DOCS_CONFIG`` if set

    Raises:
        FileNotFoundError: if an explicit path does not exist
        yaml.YAMLError / pydantic.ValidationError: on malformed settings
    """
    config = DocsConfig.from_env()

    config_path = config_path or os.getenv('NODE_DOCS_CONFIG')
    if not config_path:
        return config

    path = Path(config_path)
    with open(path, 'r', encoding='utf-8') as f:
        overrides = yaml.safe_load(f) or {}

    if not isinstance(overrides, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")

    logger.info(f"Loaded settings overrides from {path}")
    return DocsConfig.model_validate(_deep_merge(config.model_dump(), overrides))
