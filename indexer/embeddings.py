# Term-frequency embeddings for node documentation.
# Keyword-driven approximate similarity: vectors are built from word counts,
# not a trained model, so two texts only score as similar when they share
# (non-stopword) tokens.

import logging
import re
from typing import Dict, List, Optional, Sequence

import numpy as np

from services.shared.models import NodeDocumentation

logger = logging.getLogger(__name__)

DEFAULT_VECTOR_SIZE = 512

STOPWORDS = frozenset({
    'a', 'an', 'the', 'and', 'or', 'but', 'if', 'as', 'at', 'by', 'for',
    'to', 'in', 'of', 'on', 'is', 'it', 'this', 'that', 'with', 'from',
    'be', 'am', 'are', 'was', 'were', 'has', 'have', 'had',
})

_NON_ALNUM = re.compile(r'[^a-z0-9]+')


def tokenize(text: str) -> List[str]:
    """Lowercase, split on non-alphanumerics and drop stopwords."""
    cleaned = _NON_ALNUM.sub(' ', (text or '').lower())
    return [token for token in cleaned.split() if token not in STOPWORDS]


def hash_token(token: str) -> int:
    """Deterministic 32-bit string hash (h * 31 + c), absolute value.

    Stable across processes, unlike the builtin hash().
    """
    h = 0
    for ch in token:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def document_text(doc: NodeDocumentation) -> str:
    """Text used to embed a documentation record."""
    parts = [doc.display_name, doc.description]
    parts.extend(f"{p.name}: {p.description}" for p in doc.parameters)
    parts.extend(f"{e.title} {e.description}" for e in doc.examples)
    return ' '.join(parts)


class TermFrequencyEmbedder:
    """Generates fixed-size, L2-normalized term-frequency vectors.

    Each distinct token is assigned a slot the first time it is seen. Once
    the vocabulary holds ``vector_size`` tokens it freezes and further
    tokens share slots through ``hash_token(token) % vector_size``.
    """

    def __init__(self, vector_size: int = DEFAULT_VECTOR_SIZE):
        if vector_size < 1:
            raise ValueError("vector_size must be positive")
        self.vector_size = vector_size
        self.vocabulary: Dict[str, int] = {}

    @property
    def vocabulary_size(self) -> int:
        return len(self.vocabulary)

    def token_index(self, token: str) -> int:
        """Resolve the vector slot for a token, growing the vocabulary if possible."""
        index = self.vocabulary.get(token)
        if index is not None:
            return index

        if len(self.vocabulary) < self.vector_size:
            index = len(self.vocabulary)
            self.vocabulary[token] = index
            if index == self.vector_size - 1:
                logger.info(f"Embedding vocabulary full at {self.vector_size} tokens; hashing new tokens")
            return index

        return hash_token(token) % self.vector_size

    def embed(self, text: str) -> np.ndarray:
        """Embed a single text."""
        vector = np.zeros(self.vector_size, dtype=np.float64)

        tokens = tokenize(text)
        if not tokens:
            return vector

        counts: Dict[str, int] = {}
        for token in tokens:
            counts[token] = counts.get(token, 0) + 1

        total = len(tokens)
        for token, count in counts.items():
            # Hash collisions overwrite the slot
            vector[self.token_index(token)] = count / total

        magnitude = np.linalg.norm(vector)
        if magnitude == 0:
            return vector
        return vector / magnitude

    def embed_batch(self, texts: Sequence[str]) -> List[np.ndarray]:
        """Embed texts in order; the vocabulary accumulates across them."""
        return [self.embed(text) for text in texts]

    def embed_document(self, doc: NodeDocumentation) -> np.ndarray:
        return self.embed(document_text(doc))

    @staticmethod
    def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
        """Cosine similarity in [-1, 1]; 0.0 when either vector is all zeros."""
        a = np.asarray(a, dtype=np.float64)
        b = np.asarray(b, dtype=np.float64)
        if a.shape != b.shape:
            raise ValueError(f"Vectors must have the same length ({a.shape[0]} != {b.shape[0]})")

        norm_a = np.linalg.norm(a)
        norm_b = np.linalg.norm(b)
        if norm_a == 0 or norm_b == 0:
            return 0.0

        similarity = float(np.dot(a, b) / (norm_a * norm_b))
        return max(-1.0, min(1.0, similarity))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Module-level alias of TermFrequencyEmbedder.cosine_similarity."""
    return TermFrequencyEmbedder.cosine_similarity(a, b)


def format_vector(vector: Optional[Sequence[float]]) -> Optional[str]:
    """Render a vector as a pgvector text literal."""
    if vector is None:
        return None
    return '[' + ','.join(repr(float(v)) for v in vector) + ']'


def parse_vector(value) -> Optional[np.ndarray]:
    """Parse a pgvector text literal (or any float sequence) into an array."""
    if value is None:
        return None
    if isinstance(value, str):
        body = value.strip().strip('[]')
        if not body:
            return np.zeros(0, dtype=np.float64)
        return np.array([float(v) for v in body.split(',')], dtype=np.float64)
    return np.asarray(value, dtype=np.float64)
