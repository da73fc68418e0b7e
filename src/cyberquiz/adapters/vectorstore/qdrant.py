"""Qdrant vector index for cyberquiz.

Holds one point per question, keyed by the question id, in a cosine
collection. Duplicate detection queries it for nearest neighbours and
the generation worker upserts each stored question's embedding.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from cyberquiz.core.exceptions import ConfigurationError, VectorStoreConnectionError
from cyberquiz.core.types import VectorMatch

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from types import TracebackType

    from qdrant_client import AsyncQdrantClient

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:6333"
DEFAULT_COLLECTION_NAME = "cyberquiz_questions"
DEFAULT_VECTOR_SIZE = 768
DEFAULT_TIMEOUT = 30.0


class QdrantVectorStore:
    """Question embeddings stored in Qdrant.

    Implements VectorStoreProtocol. The client is created on first use,
    which also creates the collection when it is missing; ``async with``
    only adds a guaranteed close on exit.

    Attributes:
        url: Qdrant server URL.
        api_key: Optional API key.
        collection_name: Collection holding question vectors.
        vector_size: Embedding dimension; must match the embedding model.
        timeout: Request timeout in seconds.

    Example:
        >>> async with QdrantVectorStore(vector_size=768) as index:
        ...     await index.upsert(42, vector, {"question_text": "..."})
        ...     nearest = await index.search(vector, k=1)
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        api_key: str | None = None,
        collection_name: str = DEFAULT_COLLECTION_NAME,
        vector_size: int = DEFAULT_VECTOR_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.collection_name = collection_name
        self.vector_size = vector_size
        self.timeout = timeout
        self._client: AsyncQdrantClient | None = None

    async def __aenter__(self) -> QdrantVectorStore:
        await self._connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.close()

    @asynccontextmanager
    async def _wrap_errors(self, action: str) -> AsyncIterator[None]:
        """Re-raise anything but our own errors as VectorStoreConnectionError."""
        try:
            yield
        except VectorStoreConnectionError:
            raise
        except Exception as e:
            msg = f"Failed to {action}: {e}"
            raise VectorStoreConnectionError(msg) from e

    async def _connect(self) -> AsyncQdrantClient:
        """Return the client, creating it and the collection on first call.

        Raises:
            VectorStoreConnectionError: If qdrant-client is missing, the
                server is unreachable or the collection cannot be created.
        """
        if self._client is not None:
            return self._client

        try:
            from qdrant_client import AsyncQdrantClient
        except ImportError as e:
            msg = "qdrant-client is not installed. Install it with: pip install qdrant-client"
            raise VectorStoreConnectionError(msg) from e

        async with self._wrap_errors(f"connect to Qdrant at {self.url}"):
            client = AsyncQdrantClient(url=self.url, api_key=self.api_key, timeout=int(self.timeout))
        async with self._wrap_errors(f"create collection {self.collection_name} in Qdrant"):
            await self._create_collection_if_missing(client)

        self._client = client
        return client

    async def _create_collection_if_missing(self, client: AsyncQdrantClient) -> None:
        from qdrant_client.http.models import Distance, VectorParams

        existing = {c.name for c in (await client.get_collections()).collections}
        if self.collection_name in existing:
            return
        await client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=self.vector_size, distance=Distance.COSINE),
        )
        logger.info(f"Created Qdrant collection {self.collection_name} (size={self.vector_size})")

    def _check_dimension(self, vector: list[float], what: str) -> None:
        if len(vector) != self.vector_size:
            msg = f"{what} dimension ({len(vector)}) doesn't match vector_size ({self.vector_size})"
            raise ConfigurationError(msg)

    async def search(self, query_embedding: list[float], k: int = 10) -> list[VectorMatch]:
        """Return the ``k`` nearest questions by cosine similarity, best first.

        Raises:
            VectorStoreConnectionError: If Qdrant fails.
            ConfigurationError: If the query has the wrong dimension.
        """
        self._check_dimension(query_embedding, "Query embedding")
        client = await self._connect()

        async with self._wrap_errors("search in Qdrant"):
            response = await client.query_points(
                collection_name=self.collection_name,
                query=query_embedding,
                limit=k,
                with_payload=True,
            )
            return [
                VectorMatch(id=int(point.id), score=float(point.score), payload=dict(point.payload or {}))
                for point in response.points
            ]

    async def upsert(self, point_id: int, vector: list[float], payload: dict[str, Any]) -> None:
        """Insert or replace the vector of question ``point_id``.

        Raises:
            VectorStoreConnectionError: If Qdrant fails.
            ConfigurationError: If the vector has the wrong dimension.
        """
        self._check_dimension(vector, f"Question {point_id} embedding")
        from qdrant_client.http.models import PointStruct

        client = await self._connect()
        async with self._wrap_errors(f"upsert question {point_id} into Qdrant"):
            await client.upsert(
                collection_name=self.collection_name,
                points=[PointStruct(id=point_id, vector=vector, payload=payload)],
            )

    async def count(self) -> int:
        """Number of vectors in the collection."""
        client = await self._connect()
        async with self._wrap_errors("get count from Qdrant"):
            info = await client.get_collection(self.collection_name)
            return int(info.points_count or 0)

    async def is_available(self) -> bool:
        """Whether the server answers and the collection is usable."""
        try:
            client = await self._connect()
            await client.get_collections()
        except Exception as e:
            logger.debug(f"Qdrant availability check failed: {e}")
            return False
        return True
