"""Indexer package for the node documentation index.

Provides term-frequency embeddings and the vector store with its
PostgreSQL and in-memory backends.
"""

from .base_store import BackendUnavailable, DocumentStore, StorageBackend
from .embeddings import TermFrequencyEmbedder, cosine_similarity
from .memory_adapter import InMemoryDocumentStore
from .postgres_adapter import PostgresConfig, PostgresDocumentStore
from .vector_store import VectorStore

__all__ = [
    'BackendUnavailable',
    'DocumentStore',
    'StorageBackend',
    'TermFrequencyEmbedder',
    'cosine_similarity',
    'InMemoryDocumentStore',
    'PostgresConfig',
    'PostgresDocumentStore',
    'VectorStore'
]
