"""Ollama adapter for cyberquiz.

Talks to a local Ollama server: ``/api/generate`` for question text,
``/api/embed`` for the vectors used by duplicate detection.
"""

from __future__ import annotations

import logging

import httpx

from cyberquiz.adapters.llm.base import HTTPLLMClient

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "mistral:7b"
DEFAULT_EMBED_MODEL = "nomic-embed-text"
DEFAULT_TIMEOUT = 120.0
DEFAULT_TEMPERATURE = 0.7


class OllamaLLM(HTTPLLMClient):
    """Content generator backed by Ollama.

    Implements LLMProtocol. Keep one instance open with ``async with``
    while the buffer maintainer drains its queue so requests share a
    connection pool.

    Attributes:
        name: Provider label stored on generated questions.
        model: Model used for question generation.
        embed_model: Model used for embeddings.

    Example:
        >>> async with OllamaLLM(model="mistral:7b") as llm:
        ...     raw = await llm.generate(prompt)
        ...     vector = await llm.embed("SSH listens on port 22 by default.")
    """

    name: str = "ollama"
    provider = "Ollama"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        embed_model: str = DEFAULT_EMBED_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> None:
        """Initialize the adapter.

        Args:
            base_url: Ollama server root. Defaults to localhost:11434.
            model: Generation model. Defaults to "mistral:7b".
            embed_model: Embedding model. Defaults to "nomic-embed-text".
            timeout: Seconds per request. Defaults to 120.
            temperature: Sampling temperature. Defaults to 0.7.
        """
        super().__init__(base_url, timeout, temperature)
        self.model = model
        self.embed_model = embed_model

    async def generate(self, prompt: str) -> str:
        """Return the model's raw, non-streamed completion for ``prompt``.

        Raises:
            LLMConnectionError: If the request fails.
        """
        data = await self._post(
            "/api/generate",
            {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": self.temperature},
            },
        )
        text = str(data.get("response", ""))
        logger.debug(f"{self.model} produced {len(text)} characters")
        return text

    async def embed(self, text: str) -> list[float]:
        """Embed ``text`` with ``embed_model``.

        Newer servers answer ``{"embeddings": [[...]]}``; older ones a
        single ``{"embedding": [...]}``. Both are accepted.

        Raises:
            LLMConnectionError: If the request fails.
        """
        data = await self._post("/api/embed", {"model": self.embed_model, "input": text})
        batch = data.get("embeddings") or []
        vector = batch[0] if batch and isinstance(batch[0], list) else data.get("embedding") or []
        return [float(x) for x in vector]

    async def is_available(self) -> bool:
        """Whether the server answers ``GET /api/tags`` with 200."""
        try:
            async with self._session() as client:
                response = await client.get(f"{self.base_url}/api/tags")
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
        return response.status_code == 200
