"""Shared HTTP plumbing for the content-generator adapters.

Both providers speak JSON over HTTP. This base owns the httpx client
lifecycle and turns transport and status failures into
LLMConnectionError, so each provider only describes its endpoints.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import httpx

from cyberquiz.core.exceptions import LLMConnectionError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from types import TracebackType

    from typing_extensions import Self

logger = logging.getLogger(__name__)


class HTTPLLMClient:
    """Base class for httpx-backed content generators.

    Inside ``async with`` one pooled client serves every request and is
    closed on exit. Outside of it each request opens a short-lived client.

    Attributes:
        provider: Human-readable provider name used in error messages.
        base_url: API root, without trailing slash.
        timeout: Request timeout in seconds.
        temperature: Sampling temperature for generation.
    """

    provider: str = "LLM"

    def __init__(self, base_url: str, timeout: float, temperature: float) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        """Extra request headers; none by default."""
        return {}

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON payload and return the decoded JSON body.

        Raises:
            LLMConnectionError: On connection failure, timeout, non-2xx
                status or an undecodable body.
        """
        url = f"{self.base_url}{path}"
        try:
            async with self._session() as client:
                response = await client.post(url, json=payload, headers=self._headers())
                response.raise_for_status()
                data: dict[str, Any] = response.json()
        except httpx.ConnectError as e:
            msg = f"Failed to connect to {self.provider} at {self.base_url}: {e}"
            raise LLMConnectionError(msg) from e
        except httpx.TimeoutException as e:
            msg = f"Request to {self.provider} timed out after {self.timeout}s: {e}"
            raise LLMConnectionError(msg) from e
        except httpx.HTTPStatusError as e:
            msg = f"{self.provider} API error: {e.response.status_code} - {e.response.text}"
            raise LLMConnectionError(msg) from e
        except Exception as e:
            msg = f"Unexpected error calling {self.provider} ({path}): {e}"
            raise LLMConnectionError(msg) from e

        logger.debug(f"{self.provider} {path} answered")
        return data
