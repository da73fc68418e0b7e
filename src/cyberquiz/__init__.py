"""cyberquiz: AI question generation pipeline for a cybersecurity quiz platform."""

from __future__ import annotations

__version__ = "0.1.0"

from cyberquiz.buffer import BufferMaintainer
from cyberquiz.core.config import Settings
from cyberquiz.core.types import GenerationSettings, Question, QuestionStatus
from cyberquiz.generation import DuplicateDetector, GenerationWorker, SlotSampler
from cyberquiz.pipeline import Pipeline

__all__ = [
    # Pipeline
    "BufferMaintainer",
    "DuplicateDetector",
    "GenerationWorker",
    "Pipeline",
    "SlotSampler",
    # Configuration
    "GenerationSettings",
    "Settings",
    # Questions
    "Question",
    "QuestionStatus",
    "__version__",
]
