"""In-memory documentation store.

Process-local replacement for the PostgreSQL backend, used when no
database is configured or when provisioning it fails. Writes are
last-write-wins per node type.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from services.shared.models import NodeDocumentation, SearchResult
from .base_store import DocumentStore, StorageBackend, build_snippet
from .embeddings import TermFrequencyEmbedder

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    doc: NodeDocumentation
    embedding: np.ndarray


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store with brute-force cosine search."""

    backend = StorageBackend.MEMORY

    def __init__(self):
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, node_type: str) -> Optional[NodeDocumentation]:
        entry = self._entries.get(node_type)
        return entry.doc.model_copy(deep=True) if entry else None

    async def put(self, doc: NodeDocumentation, embedding: np.ndarray) -> None:
        self._entries[doc.node_type] = _Entry(
            doc=doc.model_copy(deep=True),
            embedding=np.asarray(embedding, dtype=np.float64),
        )

    async def search(self, query: str, embedding: np.ndarray, limit: int) -> List[SearchResult]:
        if limit < 1:
            return []

        results = []
        for node_type, entry in self._entries.items():
            similarity = TermFrequencyEmbedder.cosine_similarity(embedding, entry.embedding)
            if similarity <= 0:
                continue
            results.append(SearchResult(
                node_type=node_type,
                display_name=entry.doc.display_name,
                description=entry.doc.description,
                relevance=similarity,
                snippet=build_snippet(entry.doc, query),
            ))

        results.sort(key=lambda r: r.relevance, reverse=True)
        return results[:limit]

    async def node_types(self) -> List[str]:
        return list(self._entries.keys())
