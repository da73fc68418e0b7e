"""Custom exceptions for cyberquiz.

This module defines the exception hierarchy used throughout the package.
All exceptions inherit from CyberQuizError for easy catching.
"""

from __future__ import annotations


class CyberQuizError(Exception):
    """Base exception for all cyberquiz errors.

    Example:
        >>> try:
        ...     await maintainer.worker.generate_one()
        ... except CyberQuizError as e:
        ...     print(f"cyberquiz error: {e}")
    """


class ConfigurationError(CyberQuizError):
    """Raised when configuration is invalid or missing.

    Structured generation with an empty dimension set is the most common
    cause: no slot can be sampled, so no generation can proceed.

    Example:
        >>> raise ConfigurationError("Empty generation dimensions: domains")
    """


class LLMConnectionError(CyberQuizError):
    """Raised when connection to an LLM provider fails.

    Example:
        >>> raise LLMConnectionError("Failed to connect to Ollama at localhost:11434")
    """


class VectorStoreConnectionError(CyberQuizError):
    """Raised when the vector index is unreachable or rejects a request.

    Example:
        >>> raise VectorStoreConnectionError("Failed to search in Qdrant: timeout")
    """


class TransientGenerationError(CyberQuizError):
    """Raised when the content generator fails in a way worth retrying.

    Covers provider timeouts and empty or malformed model output. The
    generation worker spends one attempt on it, like a duplicate.

    Example:
        >>> raise TransientGenerationError("No JSON object found in model output")
    """


class GenerationFailed(CyberQuizError):
    """Raised when a single-question generation job gives up.

    The buffer maintainer catches it at the job boundary, records it as
    the last error and moves on to the next queued job.
    """


class DuplicateExhausted(GenerationFailed):
    """Raised when every generation attempt produced a duplicate.

    Attributes:
        attempts: Number of attempts made.
        last_similarity: Similarity score of the last duplicate, or None
            when it was an exact (hash) duplicate.
    """

    def __init__(self, attempts: int, last_similarity: float | None = None) -> None:
        self.attempts = attempts
        self.last_similarity = last_similarity
        detail = f" (last similarity {last_similarity:.3f})" if last_similarity is not None else ""
        super().__init__(f"duplicate exhaustion after {attempts} attempts{detail}")


class PersistenceError(GenerationFailed):
    """Raised when writing a generated question to the store fails."""


class QuestionNotFoundError(CyberQuizError):
    """Raised when an admin action targets an unknown question id."""


class InvalidTransitionError(CyberQuizError):
    """Raised when a review decision is applied to a question already decided."""
