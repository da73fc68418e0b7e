"""Adapters module for cyberquiz.

This module provides adapters for external services:
- Content generators (Ollama, OpenAI)
- Vector indexes (Qdrant, in-memory)
- External context sources (in-memory)
"""

from __future__ import annotations

from cyberquiz.adapters.context import InMemoryContextSource
from cyberquiz.adapters.llm import HTTPLLMClient, OllamaLLM, OpenAILLM
from cyberquiz.adapters.vectorstore import InMemoryVectorStore, QdrantVectorStore

__all__ = [
    "HTTPLLMClient",
    "InMemoryContextSource",
    "InMemoryVectorStore",
    "OllamaLLM",
    "OpenAILLM",
    "QdrantVectorStore",
]
