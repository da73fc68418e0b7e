"""LLM adapters for cyberquiz.

This module provides content generators for the supported providers.
"""

from __future__ import annotations

from cyberquiz.adapters.llm.base import HTTPLLMClient
from cyberquiz.adapters.llm.ollama import OllamaLLM
from cyberquiz.adapters.llm.openai import OpenAILLM

__all__ = [
    "HTTPLLMClient",
    "OllamaLLM",
    "OpenAILLM",
]
