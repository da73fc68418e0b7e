"""Shared fixtures for unit tests."""

from __future__ import annotations

import pytest
from fakes import FakeLLM

from cyberquiz.adapters.vectorstore.memory import InMemoryVectorStore
from cyberquiz.storage.memory import InMemoryQuestionStore


@pytest.fixture
def store() -> InMemoryQuestionStore:
    return InMemoryQuestionStore()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()
