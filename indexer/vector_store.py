"""Vector store for node documentation.

Selects a storage strategy once at initialization: PostgreSQL with pgvector
when a connection profile is configured, otherwise an in-memory dict. If the
durable backend cannot be provisioned, or later stops answering, the store
switches to memory for the rest of the process lifetime. None of these
failures reach the caller.
"""

import asyncio
import logging
import time
from typing import List, Optional

import asyncpg
import numpy as np

from observability.prometheus_metrics import (
    record_backend_fallback,
    record_search_metrics,
    record_store_write,
)
from services.shared.models import NodeDocumentation, SearchResult
from .base_store import BackendUnavailable, DocumentStore, StorageBackend
from .embeddings import TermFrequencyEmbedder
from .memory_adapter import InMemoryDocumentStore
from .postgres_adapter import PostgresConfig, PostgresDocumentStore

logger = logging.getLogger(__name__)

# Failures of an established durable backend that trigger the fallback
BACKEND_ERRORS = (
    BackendUnavailable,
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class VectorStore:
    """Documentation storage with exact lookup and similarity search."""

    def __init__(self,
                 config: Optional[PostgresConfig] = None,
                 embedder: Optional[TermFrequencyEmbedder] = None,
                 force_in_memory: bool = False):
        """Create a vector store.

        Args:
            config: PostgreSQL connection profile, or None for memory only
            embedder: Embedder used for records and queries
            force_in_memory: Ignore ``config`` and keep everything in memory
        """
        self.config = config
        self.embedder = embedder or TermFrequencyEmbedder()
        self.strategy = (
            StorageBackend.MEMORY if force_in_memory or config is None
            else StorageBackend.POSTGRESQL
        )
        self._store: Optional[DocumentStore] = None
        self._init_task: Optional[asyncio.Task] = None
        self._fell_back = False

    @property
    def initialized(self) -> bool:
        return self._store is not None

    @property
    def backend(self) -> StorageBackend:
        """Backend currently answering requests."""
        return self._store.backend if self._store is not None else self.strategy

    @property
    def fell_back(self) -> bool:
        """True once the durable backend has been abandoned."""
        return self._fell_back

    async def initialize(self):
        """Provision the configured backend. Idempotent; never raises."""
        if self._store is not None:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        await self._init_task

    async def _initialize(self):
        if self.strategy == StorageBackend.POSTGRESQL:
            store = PostgresDocumentStore(self.config, dimension=self.embedder.vector_size)
            try:
                await store.initialize()
            except BackendUnavailable as e:
                await self._fall_back(store, e)
                return
            self._store = store
        else:
            self._store = InMemoryDocumentStore()

        logger.info(f"Vector store initialized (using {self.backend.value} storage)",
                    extra={"backend": self.backend.value})

    async def _fall_back(self, failed: DocumentStore, error: BaseException):
        """Switch permanently to in-memory storage."""
        if self._fell_back:
            return
        self._fell_back = True
        # Swap before awaiting so concurrent failures retry against memory
        self._store = InMemoryDocumentStore()
        logger.warning(
            f"Durable backend unavailable, falling back to in-memory storage: {error}",
            extra={"backend": StorageBackend.MEMORY.value},
        )
        record_backend_fallback()
        await failed.close()

    async def _active(self) -> DocumentStore:
        if self._store is None:
            await self.initialize()
        return self._store

    async def store_documentation(self, doc: NodeDocumentation,
                                  embedding: Optional[np.ndarray] = None):
        """Insert or replace a record, embedding it unless a vector is given."""
        if embedding is None:
            embedding = self.embedder.embed_document(doc)

        store = await self._active()
        try:
            await store.put(doc, embedding)
        except BACKEND_ERRORS as e:
            if store.backend != StorageBackend.POSTGRESQL:
                raise
            await self._fall_back(store, e)
            store = self._store
            await store.put(doc, embedding)

        record_store_write(store.backend.value)
        logger.debug(f"Stored documentation for {doc.node_type}",
                     extra={"node_type": doc.node_type, "backend": store.backend.value})

    async def get_by_node_type(self, node_type: str) -> Optional[NodeDocumentation]:
        store = await self._active()
        try:
            return await store.get(node_type)
        except BACKEND_ERRORS as e:
            if store.backend != StorageBackend.POSTGRESQL:
                raise
            await self._fall_back(store, e)
            return await self._store.get(node_type)

    async def semantic_search(self, query: str, limit: int = 5) -> List[SearchResult]:
        """Rank stored records by similarity to ``query``.

        Results have positive relevance, are sorted by non-increasing
        relevance and number at most ``limit``.
        """
        start = time.time()
        query_embedding = self.embedder.embed(query)

        store = await self._active()
        try:
            results = await store.search(query, query_embedding, limit)
        except BACKEND_ERRORS as e:
            if store.backend != StorageBackend.POSTGRESQL:
                raise
            await self._fall_back(store, e)
            store = self._store
            results = await store.search(query, query_embedding, limit)

        record_search_metrics(store.backend.value, time.time() - start, len(results))
        return results

    async def get_all_node_types(self) -> List[str]:
        store = await self._active()
        try:
            return await store.node_types()
        except BACKEND_ERRORS as e:
            if store.backend != StorageBackend.POSTGRESQL:
                raise
            await self._fall_back(store, e)
            return await self._store.node_types()

    async def close(self):
        """Release the durable connection, if any."""
        if self._store is not None:
            await self._store.close()
