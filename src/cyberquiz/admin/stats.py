"""Duplicate detection statistics.

The cycling rate is the share of generation attempts that ended as
duplicates: a rising rate means the model keeps coming back to content
the pool already covers.
"""

from __future__ import annotations

from collections import Counter
from datetime import timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from cyberquiz.core.types import DetectionMethod, DuplicateLogEntry, utcnow

if TYPE_CHECKING:
    from cyberquiz.storage.base import QuestionStoreProtocol

TOP_HASHES = 10
EXAMPLES_PER_HASH = 2


class DuplicateHashCount(BaseModel):
    """How often one normalized question came back."""

    question_hash: str
    count: int
    examples: list[DuplicateLogEntry] = Field(default_factory=list)


class DuplicateStats(BaseModel):
    """Duplicate statistics over a time window."""

    total_duplicates: int
    hash_duplicates: int
    embedding_duplicates: int
    total_generated: int
    cycling_rate: float = Field(..., description="Percentage of attempts that were duplicates")
    window_hours: float
    topic: str | None = None
    top_duplicates: list[DuplicateHashCount] = Field(default_factory=list)


def cycling_rate(duplicates: int, generated: int) -> float:
    """``duplicates / (generated + duplicates) * 100``, rounded to 2 decimals; 0 with no attempts."""
    attempts = generated + duplicates
    if attempts == 0:
        return 0.0
    return round(duplicates / attempts * 100, 2)


class DuplicateStatsService:
    """Aggregates the duplicate log for the admin dashboard."""

    def __init__(self, store: QuestionStoreProtocol) -> None:
        self.store = store

    async def stats(self, hours: float = 24, topic: str | None = None) -> DuplicateStats:
        """Statistics for the last ``hours``, optionally restricted to one topic."""
        since = utcnow() - timedelta(hours=hours)
        logs = await self.store.list_duplicate_logs(since=since, topic=topic)
        generated = await self.store.count_created_since(since, topic=topic)

        by_method = Counter(entry.detection_method for entry in logs)
        by_hash = Counter(entry.question_hash for entry in logs)
        top = [
            DuplicateHashCount(
                question_hash=digest,
                count=count,
                examples=[e for e in logs if e.question_hash == digest][:EXAMPLES_PER_HASH],
            )
            for digest, count in by_hash.most_common(TOP_HASHES)
        ]

        return DuplicateStats(
            total_duplicates=len(logs),
            hash_duplicates=by_method[DetectionMethod.HASH],
            embedding_duplicates=by_method[DetectionMethod.EMBEDDING],
            total_generated=generated,
            cycling_rate=cycling_rate(len(logs), generated),
            window_hours=hours,
            topic=topic,
            top_duplicates=top,
        )

    async def recent(self, limit: int = 20) -> list[DuplicateLogEntry]:
        """Most recent duplicate log entries, newest first."""
        return await self.store.list_duplicate_logs(limit=limit)
