"""Cosine ranking of catalog products against a free text query"""

from __future__ import annotations
from typing import Dict, List, Sequence

import numpy as np

from .embeddings import CacheSnapshot, EmbeddingCache, EmbeddingClient, catalog_signature
from .errors import EmbeddingFormatError, UpstreamCallError
from .logger import get_logger
from .models import Product, SemanticMatch

logger = get_logger("similarity")


def _compose_text(product: Product) -> str:
    return f"{product.name} {product.description}".strip()


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """dot(a, b) / (|a| * |b|), 0.0 when either vector has zero length"""
    a = np.asarray(a, dtype="float64").reshape(-1)
    b = np.asarray(b, dtype="float64").reshape(-1)
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom == 0.0:
        return 0.0
    return float(np.dot(a, b) / denom)


def cosine_scores(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    # Row wise cosine between one query vector and every row of the matrix
    q = np.asarray(query, dtype="float64").reshape(-1)
    m = np.asarray(matrix, dtype="float64")
    if m.size == 0:
        return np.zeros(0, dtype="float64")
    if m.shape[1] != q.shape[0]:
        raise EmbeddingFormatError(
            f"Query vector has dimension {q.shape[0]} but catalog vectors have {m.shape[1]}"
        )
    denom = np.linalg.norm(m, axis=1) * np.linalg.norm(q)
    dots = m @ q
    return np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)


class SemanticMatcher:
    def __init__(self, client: EmbeddingClient, cache: EmbeddingCache):
        self.client = client
        self.cache = cache

    def _embed_catalog(self, catalog: Sequence[Product]) -> Dict[str, np.ndarray]:
        # One call per product, a failed product is left out of the index
        vectors: Dict[str, np.ndarray] = {}
        for product in catalog:
            try:
                vectors[product.id] = self.client.embed(_compose_text(product))
            except (UpstreamCallError, EmbeddingFormatError) as e:
                logger.warning(f"Failed to compute embedding for product {product.id}: {e}")
        return vectors

    def ensure_index(self, catalog: Sequence[Product]) -> CacheSnapshot:
        key = catalog_signature(catalog, self.client.model)
        return self.cache.populate(key, lambda: self._embed_catalog(catalog))

    def find_similar(self, query: str, catalog: Sequence[Product], top_k: int = 5) -> List[SemanticMatch]:
        """Rank catalog products by cosine similarity to the query

        Returns at most top_k matches, best first. Equal scores keep catalog order.
        Errors from embedding the query itself propagate to the caller.
        """
        if top_k <= 0 or not catalog:
            return []
        snapshot = self.ensure_index(catalog)
        if len(snapshot) == 0:
            return []

        query_vec = self.client.embed(query)
        scores = cosine_scores(query_vec, snapshot.matrix)
        # Stable sort on the negated score keeps catalog order for ties
        order = np.argsort(-scores, kind="stable")[:top_k]

        by_id = {p.id: p for p in catalog}
        return [
            SemanticMatch(product=by_id[snapshot.ids[i]], similarity_score=float(scores[i]))
            for i in order
        ]
