"""OpenAI adapter for cyberquiz.

Uses the chat completions endpoint in JSON-object mode for question
text and the embeddings endpoint for duplicate detection vectors.
"""

from __future__ import annotations

import os

from cyberquiz.adapters.llm.base import HTTPLLMClient
from cyberquiz.core.exceptions import ConfigurationError

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_EMBED_MODEL = "text-embedding-3-small"
DEFAULT_TIMEOUT = 120.0
DEFAULT_TEMPERATURE = 0.7


class OpenAILLM(HTTPLLMClient):
    """Content generator backed by the OpenAI API.

    Implements LLMProtocol.

    Attributes:
        name: Provider label stored on generated questions.
        api_key: Bearer token.
        model: Chat model used for question generation.
        embed_model: Embedding model.

    Example:
        >>> async with OpenAILLM(api_key="sk-...") as llm:
        ...     raw = await llm.generate(prompt)
    """

    name: str = "openai"
    provider = "OpenAI"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        embed_model: str = DEFAULT_EMBED_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> None:
        """Initialize the adapter.

        Args:
            api_key: API key; falls back to the OPENAI_API_KEY variable.
            base_url: API root. Defaults to api.openai.com/v1.
            model: Chat model. Defaults to "gpt-4o-mini".
            embed_model: Embedding model. Defaults to "text-embedding-3-small".
            timeout: Seconds per request. Defaults to 120.
            temperature: Sampling temperature. Defaults to 0.7.

        Raises:
            ConfigurationError: If no API key is available.
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            msg = "OpenAI API key required. Set CYBERQUIZ_OPENAI_API_KEY or OPENAI_API_KEY."
            raise ConfigurationError(msg)
        super().__init__(base_url, timeout, temperature)
        self.model = model
        self.embed_model = embed_model

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def generate(self, prompt: str) -> str:
        """Return the first choice's message content, or "" when there is none.

        Raises:
            LLMConnectionError: If the request fails.
        """
        data = await self._post(
            "/chat/completions",
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": self.temperature,
                "response_format": {"type": "json_object"},
            },
        )
        choices = data.get("choices") or []
        if not choices:
            return ""
        return str(choices[0].get("message", {}).get("content") or "")

    async def embed(self, text: str) -> list[float]:
        """Embed ``text`` with ``embed_model``.

        Raises:
            LLMConnectionError: If the request fails.
        """
        data = await self._post("/embeddings", {"model": self.embed_model, "input": text})
        items = data.get("data") or []
        if not items:
            return []
        return [float(x) for x in items[0].get("embedding", [])]
