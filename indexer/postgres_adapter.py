"""PostgreSQL documentation store.

Persists node documentation in a single table with a pgvector column and
an ivfflat cosine index for nearest-neighbour search.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import asyncpg
import numpy as np
from pydantic import BaseModel

from services.shared.models import NodeDocumentation, SearchResult
from .base_store import BackendUnavailable, DocumentStore, StorageBackend, build_snippet
from .embeddings import DEFAULT_VECTOR_SIZE, format_vector

logger = logging.getLogger(__name__)

TABLE_NAME = "node_documentation"


class PostgresConfig(BaseModel):
    """PostgreSQL connection configuration."""
    host: str = "localhost"
    port: int = 5432
    database: str = "n8n_docs"
    user: str = "postgres"
    password: str = ""
    min_connections: int = 1
    max_connections: int = 10
    command_timeout: int = 60


class PostgresDocumentStore(DocumentStore):
    """pgvector-backed documentation store."""

    backend = StorageBackend.POSTGRESQL

    def __init__(self, config: PostgresConfig, dimension: int = DEFAULT_VECTOR_SIZE):
        self.config = config
        self.dimension = dimension
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self):
        """Create the pool, the vector extension, the table and its index.

        Raises BackendUnavailable on any failure; the pool is closed first.
        """
        try:
            self.pool = await asyncpg.create_pool(
                host=self.config.host,
                port=self.config.port,
                database=self.config.database,
                user=self.config.user,
                password=self.config.password,
                min_size=self.config.min_connections,
                max_size=self.config.max_connections,
                command_timeout=self.config.command_timeout,
            )
            logger.info(f"PostgreSQL pool created for {self.config.host}:{self.config.port}/{self.config.database}")

            async with self.pool.acquire() as conn:
                await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
                await conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                        id SERIAL PRIMARY KEY,
                        node_type TEXT UNIQUE NOT NULL,
                        display_name TEXT NOT NULL,
                        description TEXT NOT NULL,
                        version TEXT NOT NULL,
                        parameters JSONB NOT NULL,
                        examples JSONB NOT NULL,
                        source_url TEXT NOT NULL,
                        fetched_at TIMESTAMPTZ NOT NULL,
                        embedding vector({self.dimension})
                    )
                    """
                )
                await conn.execute(
                    f"""
                    CREATE INDEX IF NOT EXISTS {TABLE_NAME}_embedding_idx
                    ON {TABLE_NAME}
                    USING ivfflat (embedding vector_cosine_ops)
                    WITH (lists = 100)
                    """
                )
            logger.info(f"Table {TABLE_NAME} and similarity index ensured")

        except Exception as e:
            await self.close()
            raise BackendUnavailable(f"Failed to provision PostgreSQL: {e}", cause=e) from e

    async def close(self):
        """Close the connection pool."""
        if self.pool is not None:
            pool, self.pool = self.pool, None
            try:
                await pool.close()
                logger.info("PostgreSQL connection pool closed")
            except Exception as e:
                logger.warning(f"Error closing PostgreSQL pool: {e}")

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise BackendUnavailable("PostgreSQL pool is not initialized")
        return self.pool

    async def put(self, doc: NodeDocumentation, embedding: np.ndarray) -> None:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                f"""
                INSERT INTO {TABLE_NAME} (
                    node_type, display_name, description, version,
                    parameters, examples, source_url, fetched_at, embedding
                ) VALUES ($1, $2, $3, $4, $5::jsonb, $6::jsonb, $7, $8, $9::vector)
                ON CONFLICT (node_type) DO UPDATE SET
                    display_name = EXCLUDED.display_name,
                    description = EXCLUDED.description,
                    version = EXCLUDED.version,
                    parameters = EXCLUDED.parameters,
                    examples = EXCLUDED.examples,
                    source_url = EXCLUDED.source_url,
                    fetched_at = EXCLUDED.fetched_at,
                    embedding = EXCLUDED.embedding
                """,
                doc.node_type,
                doc.display_name,
                doc.description,
                doc.version,
                json.dumps([p.model_dump(mode="json") for p in doc.parameters]),
                json.dumps([e.model_dump(mode="json") for e in doc.examples]),
                doc.source_url,
                doc.fetched_at,
                format_vector(embedding),
            )

    async def get(self, node_type: str) -> Optional[NodeDocumentation]:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT node_type, display_name, description, version,
                       parameters, examples, source_url, fetched_at
                FROM {TABLE_NAME}
                WHERE node_type = $1
                """,
                node_type,
            )
        return row_to_documentation(row) if row else None

    async def search(self, query: str, embedding: np.ndarray, limit: int) -> List[SearchResult]:
        if limit < 1 or not np.any(embedding):
            # pgvector cosine distance is undefined for a zero vector
            return []

        pool = self._require_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT node_type, display_name, description, version,
                       parameters, examples, source_url, fetched_at,
                       1 - (embedding <=> $1::vector) AS relevance
                FROM {TABLE_NAME}
                WHERE embedding IS NOT NULL
                ORDER BY embedding <=> $1::vector
                LIMIT $2
                """,
                format_vector(embedding),
                limit,
            )

        results = []
        for row in rows:
            relevance = float(row["relevance"])
            if not relevance > 0:
                continue
            doc = row_to_documentation(row)
            results.append(SearchResult(
                node_type=doc.node_type,
                display_name=doc.display_name,
                description=doc.description,
                relevance=relevance,
                snippet=build_snippet(doc, query),
            ))
        return results

    async def node_types(self) -> List[str]:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT node_type FROM {TABLE_NAME} ORDER BY id")
        return [row["node_type"] for row in rows]


def _decode_json(value: Any) -> Any:
    # asyncpg returns json/jsonb as text unless a codec is registered
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def row_to_documentation(row: Dict[str, Any]) -> NodeDocumentation:
    """Convert a table row into a NodeDocumentation record."""
    return NodeDocumentation(
        node_type=row["node_type"],
        display_name=row["display_name"],
        description=row["description"],
        version=row["version"],
        parameters=_decode_json(row["parameters"]) or [],
        examples=_decode_json(row["examples"]) or [],
        source_url=row["source_url"],
        fetched_at=row["fetched_at"],
    )
