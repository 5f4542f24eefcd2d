"""Storage capability shared by the documentation backends."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

import numpy as np

from services.shared.models import NodeDocumentation, SearchResult


class StorageBackend(str, Enum):
    """Available documentation storage backends."""
    MEMORY = "memory"
    POSTGRESQL = "postgresql"


class BackendUnavailable(Exception):
    """The durable backend could not be provisioned or queried."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class DocumentStore(ABC):
    """Keyed documentation storage with vector similarity search."""

    backend: StorageBackend

    async def initialize(self) -> None:
        """Provision whatever the backend needs. Default: nothing."""

    @abstractmethod
    async def get(self, node_type: str) -> Optional[NodeDocumentation]:
        """Exact lookup by node type."""

    @abstractmethod
    async def put(self, doc: NodeDocumentation, embedding: np.ndarray) -> None:
        """Insert or replace the record for ``doc.node_type``."""

    @abstractmethod
    async def search(self, query: str, embedding: np.ndarray, limit: int) -> List[SearchResult]:
        """Return at most ``limit`` hits ordered by non-increasing relevance."""

    @abstractmethod
    async def node_types(self) -> List[str]:
        """All stored node types."""

    async def close(self) -> None:
        """Release backend resources. Default: nothing."""


def build_snippet(doc: NodeDocumentation, query: str) -> str:
    """Pick the part of a record that best explains why it matched ``query``.

    Parameters are scanned first, then examples; the first one whose text
    contains any query term (case-insensitive) wins. Falls back to the
    description.
    """
    terms = [term for term in query.lower().split() if term]
    if not terms:
        return doc.description

    for param in doc.parameters:
        text = f"{param.name}: {param.description}".lower()
        if any(term in text for term in terms):
            return f"Parameter: {param.name} - {param.description}"

    for example in doc.examples:
        text = f"{example.title} {example.description}".lower()
        if any(term in text for term in terms):
            summary = example.description
            if len(summary) > 100:
                summary = summary[:100] + "..."
            return f"Example: {example.title} - {summary}"

    return doc.description
