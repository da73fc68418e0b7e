"""Two-stage duplicate detection.

Stage one compares the normalized-text hash against stored questions;
stage two compares the candidate embedding with its nearest neighbour in
the vector index. Every detected duplicate is written to the duplicate
log. A separate advisory band, below the duplicate threshold, surfaces
near-duplicates to reviewers without rejecting them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cyberquiz.core.hashing import question_hash, short_hash
from cyberquiz.core.types import DetectionMethod, DuplicateLogEntry, SimilarQuestion

if TYPE_CHECKING:
    from cyberquiz.core.protocols import VectorStoreProtocol
    from cyberquiz.storage.base import QuestionStoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_DUPLICATE_THRESHOLD = 0.95
DEFAULT_DISPLAY_THRESHOLD = 0.75
MAX_SIMILAR = 10


@dataclass(frozen=True)
class DuplicateVerdict:
    """Outcome of a duplicate check.

    Attributes:
        is_duplicate: Whether the candidate must be discarded.
        method: Which stage detected it, or None.
        similarity: Cosine similarity of the nearest neighbour, when the
            embedding stage ran.
        matched_id: Id of the matching question, when known.
    """

    is_duplicate: bool
    method: DetectionMethod | None = None
    similarity: float | None = None
    matched_id: int | None = None


class DuplicateDetector:
    """Decides whether a candidate question repeats existing content.

    Attributes:
        store: Question store (hash lookup and duplicate log).
        vector_store: Vector index of existing questions.
        duplicate_threshold: Similarity strictly above which a candidate is a duplicate.
        display_threshold: Similarity strictly above which a neighbour is advisory.

    Example:
        >>> detector = DuplicateDetector(store, vector_store)
        >>> verdict = await detector.check(text, embedding, topic="Cryptography")
        >>> verdict.is_duplicate
        False
    """

    def __init__(
        self,
        store: QuestionStoreProtocol,
        vector_store: VectorStoreProtocol,
        *,
        duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
        display_threshold: float = DEFAULT_DISPLAY_THRESHOLD,
    ) -> None:
        if display_threshold >= duplicate_threshold:
            msg = f"display_threshold ({display_threshold}) must be lower than duplicate_threshold ({duplicate_threshold})"
            raise ValueError(msg)
        self.store = store
        self.vector_store = vector_store
        self.duplicate_threshold = duplicate_threshold
        self.display_threshold = display_threshold

    async def check(self, text: str, embedding: list[float], *, topic: str = "") -> DuplicateVerdict:
        """Run both detection stages and log any duplicate found.

        The vector index is not consulted when the hash stage matches.

        Args:
            text: Candidate question text.
            embedding: Embedding of ``text``.
            topic: Category recorded on the log entry.

        Returns:
            The verdict.

        Raises:
            VectorStoreConnectionError: If the vector index is unreachable.
            ConfigurationError: If ``embedding`` does not fit the index dimension.
        """
        digest = question_hash(text)

        existing = await self.store.find_by_hash(digest)
        if existing is not None:
            logger.warning(f"Exact duplicate {short_hash(digest)} of question {existing.id}")
            verdict = DuplicateVerdict(
                is_duplicate=True,
                method=DetectionMethod.HASH,
                matched_id=existing.id,
            )
            await self._log(digest, text, verdict, topic)
            return verdict

        neighbours = await self.vector_store.search(embedding, k=1)
        if not neighbours:
            return DuplicateVerdict(is_duplicate=False)

        nearest = neighbours[0]
        if nearest.score > self.duplicate_threshold:
            logger.warning(f"Semantic duplicate of question {nearest.id} (similarity {nearest.score:.3f})")
            verdict = DuplicateVerdict(
                is_duplicate=True,
                method=DetectionMethod.EMBEDDING,
                similarity=nearest.score,
                matched_id=nearest.id,
            )
            await self._log(digest, text, verdict, topic)
            return verdict

        return DuplicateVerdict(is_duplicate=False, similarity=nearest.score, matched_id=nearest.id)

    async def is_duplicate(self, text: str, embedding: list[float], *, topic: str = "") -> bool:
        """Boolean form of check()."""
        verdict = await self.check(text, embedding, topic=topic)
        return verdict.is_duplicate

    async def find_similar(self, embedding: list[float]) -> list[SimilarQuestion]:
        """Neighbours in the advisory band, most similar first.

        Returns:
            Up to 10 questions with display_threshold < similarity < duplicate_threshold.
        """
        neighbours = await self.vector_store.search(embedding, k=MAX_SIMILAR)
        similar = [
            SimilarQuestion(id=match.id, similarity=match.score)
            for match in neighbours
            if self.display_threshold < match.score < self.duplicate_threshold
        ]
        similar.sort(key=lambda s: s.similarity, reverse=True)
        return similar[:MAX_SIMILAR]

    async def _log(self, digest: str, text: str, verdict: DuplicateVerdict, topic: str) -> None:
        await self.store.add_duplicate_log(
            DuplicateLogEntry(
                question_hash=digest,
                attempted_text=text,
                detection_method=verdict.method or DetectionMethod.HASH,
                similarity_score=verdict.similarity,
                original_question_id=verdict.matched_id,
                topic=topic,
            )
        )
