"""In-memory vector store for cyberquiz.

Brute-force cosine similarity over a numpy matrix. Suitable for tests,
local runs and pools of a few thousand questions.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from cyberquiz.core.exceptions import ConfigurationError
from cyberquiz.core.types import VectorMatch


class InMemoryVectorStore:
    """Vector index kept in process memory.

    Implements VectorStoreProtocol. Vectors are L2-normalized on insert so
    a search is a single matrix-vector product.

    Example:
        >>> store = InMemoryVectorStore()
        >>> await store.upsert(1, [1.0, 0.0], {"question_text": "..."})
        >>> (await store.search([1.0, 0.0], k=1))[0].score
        1.0
    """

    def __init__(self) -> None:
        self._ids: list[int] = []
        self._payloads: dict[int, dict[str, Any]] = {}
        self._vectors: np.ndarray | None = None

    @staticmethod
    def _normalize(vector: list[float]) -> np.ndarray:
        arr = np.asarray(vector, dtype=np.float32)
        norm = float(np.linalg.norm(arr))
        if norm == 0.0:
            return arr
        return arr / norm

    async def upsert(
        self,
        point_id: int,
        vector: list[float],
        payload: dict[str, Any],
    ) -> None:
        """Insert or replace the embedding of a question.

        Raises:
            ConfigurationError: If the vector dimension differs from stored vectors.
        """
        row = self._normalize(vector)
        if self._vectors is not None and row.shape[0] != self._vectors.shape[1]:
            msg = f"Embedding dimension ({row.shape[0]}) doesn't match index dimension ({self._vectors.shape[1]})"
            raise ConfigurationError(msg)

        self._payloads[point_id] = dict(payload)
        if point_id in self._ids and self._vectors is not None:
            self._vectors[self._ids.index(point_id)] = row
            return
        self._ids.append(point_id)
        if self._vectors is None:
            self._vectors = row.reshape(1, -1)
        else:
            self._vectors = np.vstack([self._vectors, row])

    async def search(
        self,
        query_embedding: list[float],
        k: int = 10,
    ) -> list[VectorMatch]:
        """Return the ``k`` most similar questions, highest similarity first.

        Raises:
            ConfigurationError: If the query dimension differs from stored vectors.
        """
        if self._vectors is None or k <= 0:
            return []
        query = self._normalize(query_embedding)
        if query.shape[0] != self._vectors.shape[1]:
            msg = f"Query embedding dimension ({query.shape[0]}) doesn't match index dimension ({self._vectors.shape[1]})"
            raise ConfigurationError(msg)

        scores = self._vectors @ query
        order = np.argsort(-scores, kind="stable")[:k]
        return [
            VectorMatch(
                id=self._ids[i],
                score=float(scores[i]),
                payload=dict(self._payloads[self._ids[i]]),
            )
            for i in order
        ]

    async def count(self) -> int:
        """Number of stored embeddings."""
        return len(self._ids)

    def __len__(self) -> int:
        return len(self._ids)
