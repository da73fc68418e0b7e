"""Question generation for cyberquiz.

Slot sampling, prompt building, output parsing, duplicate detection and
the single-question generation worker.
"""

from __future__ import annotations

from cyberquiz.generation.duplicates import DuplicateDetector, DuplicateVerdict
from cyberquiz.generation.models import GeneratedCandidate
from cyberquiz.generation.parsing import parse_candidate, parse_json_object
from cyberquiz.generation.prompts import build_generation_prompt
from cyberquiz.generation.slots import FALLBACK_SLOT, SlotSampler
from cyberquiz.generation.worker import MAX_RETRIES, GenerationWorker

__all__ = [
    "FALLBACK_SLOT",
    "MAX_RETRIES",
    "DuplicateDetector",
    "DuplicateVerdict",
    "GeneratedCandidate",
    "GenerationWorker",
    "SlotSampler",
    "build_generation_prompt",
    "parse_candidate",
    "parse_json_object",
]
