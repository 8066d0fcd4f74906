from __future__ import annotations
import hashlib
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from .errors import EmbeddingFormatError
from .llm import OpenRouterClient
from .logger import get_logger
from .models import Product

logger = get_logger("embeddings")


class EmbeddingClient:
    def __init__(self, transport: OpenRouterClient, model: Optional[str] = None):
        # Remote model, one text in and one vector out per call
        self.transport = transport
        self.model = model or transport.settings.embedding_model

    def embed(self, text: str) -> np.ndarray:
        data = self.transport.embeddings(text, model=self.model)
        rows = data.get("data")
        if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
            logger.error(f"Unexpected embedding response keys: {sorted(data.keys())}")
            raise EmbeddingFormatError("Embedding response has no data[0] object")
        values = rows[0].get("embedding")
        if not isinstance(values, list) or not values:
            raise EmbeddingFormatError("Embedding response has no embedding vector")
        if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in values):
            raise EmbeddingFormatError("Embedding vector contains non numeric values")
        vec = np.asarray(values, dtype="float32")
        if not np.all(np.isfinite(vec)):
            raise EmbeddingFormatError("Embedding vector contains non finite values")
        return vec


def catalog_signature(products: Sequence[Product], model: str = "") -> str:
    """Identity of a catalog as seen by the embedding model"""
    hasher = hashlib.sha256()
    hasher.update(model.encode("utf-8"))
    for p in products:
        hasher.update(f"{p.id}|{p.name}|{p.description}\n".encode("utf-8"))
    return hasher.hexdigest()


class CacheState(str, Enum):
    EMPTY = "empty"
    POPULATING = "populating"
    READY = "ready"


@dataclass(frozen=True)
class CacheSnapshot:
    key: str
    ids: Tuple[str, ...]
    matrix: np.ndarray  # shape (N, D), row i belongs to ids[i]

    @classmethod
    def from_vectors(cls, key: str, vectors: Dict[str, np.ndarray]) -> "CacheSnapshot":
        ids = []
        rows = []
        dim = None
        for pid, vec in vectors.items():
            vec = np.asarray(vec, dtype="float32").reshape(-1)
            if dim is None:
                dim = vec.shape[0]
            if vec.shape[0] != dim:
                logger.warning(f"Dropping embedding for product {pid}: dimension {vec.shape[0]} != {dim}")
                continue
            ids.append(pid)
            rows.append(vec)
        matrix = np.vstack(rows) if rows else np.zeros((0, 0), dtype="float32")
        matrix.setflags(write=False)
        return cls(key=key, ids=tuple(ids), matrix=matrix)

    def __len__(self) -> int:
        return len(self.ids)


class EmbeddingCache:
    """Process wide productId -> vector store

    Built lazily on the first semantic query. Population is single flight: concurrent
    callers wait on the lock and then reuse the result. Readers only ever see a complete
    snapshot since a new one is swapped in as a whole.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Optional[CacheSnapshot] = None
        self._state = CacheState.EMPTY

    @property
    def state(self) -> CacheState:
        return self._state

    def __len__(self) -> int:
        snap = self._snapshot
        return len(snap) if snap is not None else 0

    def get(self, key: str) -> Optional[CacheSnapshot]:
        snap = self._snapshot
        if snap is not None and snap.key == key:
            return snap
        return None

    def populate(self, key: str, builder: Callable[[], Dict[str, np.ndarray]]) -> CacheSnapshot:
        snap = self.get(key)
        if snap is not None:
            return snap
        with self._lock:
            # Another request may have finished the same population while we waited
            snap = self.get(key)
            if snap is not None:
                return snap
            self._state = CacheState.POPULATING
            try:
                vectors = builder()
            except BaseException:
                self._state = CacheState.READY if self._snapshot is not None else CacheState.EMPTY
                raise
            snap = CacheSnapshot.from_vectors(key, vectors)
            self._snapshot = snap
            self._state = CacheState.READY
            logger.info(f"Embedding cache ready with {len(snap)} vectors")
            return snap

    def reset(self) -> None:
        with self._lock:
            self._snapshot = None
            self._state = CacheState.EMPTY
        logger.info("Embedding cache cleared")
