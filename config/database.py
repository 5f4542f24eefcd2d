"""Storage configuration for the documentation index.

Chooses between PostgreSQL with pgvector (durable) and the in-memory
store. The choice made here is a preference: the vector store still falls
back to memory if PostgreSQL cannot be provisioned.
"""

import os
import logging
from typing import Optional
from pydantic import BaseModel, Field

from indexer.base_store import StorageBackend
from indexer.embeddings import TermFrequencyEmbedder
from indexer.postgres_adapter import PostgresConfig
from indexer.vector_store import VectorStore

logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUTHY


class DatabaseConfig(BaseModel):
    """Database configuration."""
    backend: StorageBackend = Field(default=StorageBackend.MEMORY, description="Preferred storage backend")
    postgres: PostgresConfig = Field(default_factory=PostgresConfig, description="PostgreSQL configuration")
    force_in_memory: bool = Field(default=False, description="Never use the durable backend")

    @property
    def postgres_profile(self) -> Optional[PostgresConfig]:
        """Connection profile to try, or None when memory is wanted."""
        if self.force_in_memory or self.backend != StorageBackend.POSTGRESQL:
            return None
        return self.postgres

    @classmethod
    def from_env(cls) -> 'DatabaseConfig':
        """Create configuration from environment variables.

        ``NODE_DOCS_STORE`` selects the backend; when unset, PostgreSQL is
        used if ``POSTGRES_HOST`` is present.
        """
        store = os.getenv('NODE_DOCS_STORE')
        if store:
            backend = StorageBackend(store.strip().lower())
        elif os.getenv('POSTGRES_HOST'):
            backend = StorageBackend.POSTGRESQL
        else:
            backend = StorageBackend.MEMORY

        postgres_config = PostgresConfig(
            host=os.getenv('POSTGRES_HOST', 'localhost'),
            port=int(os.getenv('POSTGRES_PORT', '5432')),
            database=os.getenv('POSTGRES_DB', 'n8n_docs'),
            user=os.getenv('POSTGRES_USER', 'postgres'),
            password=os.getenv('POSTGRES_PASSWORD', ''),
            min_connections=int(os.getenv('POSTGRES_MIN_CONNECTIONS', '1')),
            max_connections=int(os.getenv('POSTGRES_MAX_CONNECTIONS', '10')),
            command_timeout=int(os.getenv('POSTGRES_COMMAND_TIMEOUT', '60'))
        )

        return cls(
            backend=backend,
            postgres=postgres_config,
            force_in_memory=env_flag('NODE_DOCS_FORCE_MEMORY')
        )


def create_vector_store(config: DatabaseConfig, embedder: TermFrequencyEmbedder) -> VectorStore:
    """Build a vector store for the configured backend."""
    profile = config.postgres_profile
    logger.info(f"Creating vector store (preferred backend: {'postgresql' if profile else 'memory'})")
    return VectorStore(profile, embedder, force_in_memory=config.force_in_memory)
