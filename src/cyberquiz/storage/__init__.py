"""Question store implementations for cyberquiz."""

from __future__ import annotations

from cyberquiz.storage.base import QuestionStoreProtocol
from cyberquiz.storage.memory import InMemoryQuestionStore
from cyberquiz.storage.sql import SQLQuestionStore

__all__ = [
    "InMemoryQuestionStore",
    "QuestionStoreProtocol",
    "SQLQuestionStore",
]
