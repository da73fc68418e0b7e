"""Protocol definitions for cyberquiz.

This module defines the abstract interfaces (protocols) that adapters
must implement. Using protocols enables duck typing and loose coupling:
the generation pipeline never imports a concrete provider.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cyberquiz.core.types import ContextBundle, VectorMatch


@runtime_checkable
class LLMProtocol(Protocol):
    """Protocol for content generators.

    Any class implementing these methods can be used as a content
    generator, without needing to inherit from a base class.

    Attributes:
        name: Provider label stored on generated questions.

    Example:
        >>> class MyLLM:
        ...     name: str = "stub"
        ...
        ...     async def generate(self, prompt: str) -> str:
        ...         return '{"questionText": "..."}'
        ...
        ...     async def embed(self, text: str) -> list[float]:
        ...         return [0.1, 0.2, 0.3]
        ...
        >>> assert isinstance(MyLLM(), LLMProtocol)
    """

    name: str

    async def generate(self, prompt: str) -> str:
        """Generate raw text from a prompt.

        Args:
            prompt: The input prompt for text generation.

        Returns:
            The generated text response.

        Raises:
            LLMConnectionError: If the LLM provider is unreachable.
        """
        ...

    async def embed(self, text: str) -> list[float]:
        """Generate an embedding vector for the given text.

        Args:
            text: The text to embed.

        Returns:
            A list of floats representing the embedding vector.

        Raises:
            LLMConnectionError: If the LLM provider is unreachable.
        """
        ...


@runtime_checkable
class VectorStoreProtocol(Protocol):
    """Protocol for the vector index holding one embedding per question.

    Example:
        >>> class MyVectorStore:
        ...     async def search(
        ...         self, query_embedding: list[float], k: int = 10
        ...     ) -> list[VectorMatch]:
        ...         return []
        ...
        ...     async def upsert(
        ...         self, point_id: int, vector: list[float], payload: dict[str, Any]
        ...     ) -> None:
        ...         pass
        ...
        >>> assert isinstance(MyVectorStore(), VectorStoreProtocol)
    """

    async def search(
        self,
        query_embedding: list[float],
        k: int = 10,
    ) -> list[VectorMatch]:
        """Search for the nearest questions by cosine similarity.

        Args:
            query_embedding: The embedding vector to search with.
            k: Number of results to return. Defaults to 10.

        Returns:
            Matches sorted by similarity in descending order.

        Raises:
            VectorStoreConnectionError: If the vector store is unreachable.
        """
        ...

    async def upsert(
        self,
        point_id: int,
        vector: list[float],
        payload: dict[str, Any],
    ) -> None:
        """Insert or replace the embedding of a question.

        Args:
            point_id: Question id used as the point key.
            vector: Embedding of the question text.
            payload: Denormalized question fields.

        Raises:
            VectorStoreConnectionError: If the vector store is unreachable.
        """
        ...


@runtime_checkable
class ContextSourceProtocol(Protocol):
    """Protocol for external context (news feed items) used to ground prompts.

    Example:
        >>> class NoContext:
        ...     async def get_context(self, max_items: int = 5) -> ContextBundle:
        ...         return ContextBundle()
        ...
        ...     async def mark_used(self, item_ids: list[int]) -> None:
        ...         pass
        ...
        >>> assert isinstance(NoContext(), ContextSourceProtocol)
    """

    async def get_context(self, max_items: int = 5) -> ContextBundle:
        """Return up to ``max_items`` unused items, most recent first."""
        ...

    async def mark_used(self, item_ids: list[int]) -> None:
        """Flag items as consumed so they are not offered again."""
        ...
