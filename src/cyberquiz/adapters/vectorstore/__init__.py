"""Vector store adapters for cyberquiz."""

from __future__ import annotations

from cyberquiz.adapters.vectorstore.memory import InMemoryVectorStore
from cyberquiz.adapters.vectorstore.qdrant import QdrantVectorStore

__all__ = [
    "InMemoryVectorStore",
    "QdrantVectorStore",
]
