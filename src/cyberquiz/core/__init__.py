"""Core module for cyberquiz.

This module contains the fundamental types, protocols, exceptions,
and configuration used throughout the pipeline.
"""

from __future__ import annotations

from cyberquiz.core.config import Settings
from cyberquiz.core.exceptions import (
    ConfigurationError,
    CyberQuizError,
    DuplicateExhausted,
    GenerationFailed,
    InvalidTransitionError,
    LLMConnectionError,
    PersistenceError,
    QuestionNotFoundError,
    TransientGenerationError,
    VectorStoreConnectionError,
)
from cyberquiz.core.hashing import normalize_question_text, question_hash
from cyberquiz.core.protocols import (
    ContextSourceProtocol,
    LLMProtocol,
    VectorStoreProtocol,
)
from cyberquiz.core.types import (
    BufferStatus,
    ContextBundle,
    ContextItem,
    DetectionMethod,
    DuplicateLogEntry,
    GenerationRun,
    GenerationSettings,
    GenerationSlot,
    Question,
    QuestionStatus,
    SimilarQuestion,
    SlotHistoryEntry,
    SlotSpace,
    VectorMatch,
)

__all__ = [
    "BufferStatus",
    "ConfigurationError",
    "ContextBundle",
    "ContextItem",
    "ContextSourceProtocol",
    "CyberQuizError",
    "DetectionMethod",
    "DuplicateExhausted",
    "DuplicateLogEntry",
    "GenerationFailed",
    "GenerationRun",
    "GenerationSettings",
    "GenerationSlot",
    "InvalidTransitionError",
    "LLMConnectionError",
    "LLMProtocol",
    "PersistenceError",
    "Question",
    "QuestionNotFoundError",
    "QuestionStatus",
    "Settings",
    "SimilarQuestion",
    "SlotHistoryEntry",
    "SlotSpace",
    "TransientGenerationError",
    "VectorMatch",
    "VectorStoreConnectionError",
    "VectorStoreProtocol",
    "normalize_question_text",
    "question_hash",
]
