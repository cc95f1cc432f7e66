"""
In-memory vector index implementation.

Exact cosine-similarity search over a dictionary of labelled vectors,
suitable for testing and small deployments. For production, use the Qdrant
implementation.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from lineage_memory.storage.vector.models import VectorSearchHit

logger = logging.getLogger(__name__)


class InMemoryVectorIndex:
    """
    In-memory implementation of the VectorIndex protocol.

    Vectors are stored L2-normalised so that a dot product is the cosine
    similarity. Data is lost on restart.
    """

    def __init__(self, dimension: Optional[int] = None):
        self.dimension = dimension
        self._vectors: Dict[int, np.ndarray] = {}

        logger.info(f"InMemoryVectorIndex initialized (dimension={dimension})")

    def _normalize(self, vector: Sequence[float]) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float64)
        if array.ndim != 1:
            raise ValueError("Vectors must be one-dimensional")
        if self.dimension is not None and array.shape[0] != self.dimension:
            raise ValueError(
                f"Vector dimension {array.shape[0]} does not match index dimension {self.dimension}"
            )
        norm = np.linalg.norm(array)
        return array / norm if norm > 0 else array

    def insert(self, label: int, vector: Sequence[float]) -> None:
        """Insert or replace the vector stored under a label."""
        self._vectors[label] = self._normalize(vector)
        logger.debug(f"Inserted vector for label {label}")

    def remove(self, label: int) -> bool:
        """Remove a label; returns False if it was not indexed."""
        if self._vectors.pop(label, None) is None:
            return False
        logger.debug(f"Removed vector for label {label}")
        return True

    def search(self, vector: Sequence[float], top_k: int = 10) -> List[VectorSearchHit]:
        """Return the top_k labels ranked by cosine similarity (highest first)."""
        if not self._vectors or top_k <= 0:
            return []

        query = self._normalize(vector)
        labels = list(self._vectors.keys())
        matrix = np.stack([self._vectors[label] for label in labels])
        scores = matrix @ query

        order = np.argsort(-scores, kind="stable")[:top_k]
        hits = [VectorSearchHit(label=labels[i], score=float(scores[i])) for i in order]

        logger.debug(f"{len(hits)} hits found (top_k={top_k})")
        return hits

    def __len__(self) -> int:
        return len(self._vectors)

    def clear(self):
        """Remove ALL vectors from the index."""
        count = len(self._vectors)
        self._vectors.clear()
        logger.info(f"Cleared all vectors ({count} total)")
