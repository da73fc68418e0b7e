"""Admin review decisions on generated questions.

Accepting or rejecting a question takes it out of the review pool, so
every decision asks the buffer maintainer to top the pool back up.
Rejected questions are kept (flagged ``is_rejected``) for audit and so
their hash keeps blocking regeneration.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel

from cyberquiz.core.exceptions import InvalidTransitionError, QuestionNotFoundError
from cyberquiz.core.types import Question, QuestionStatus

if TYPE_CHECKING:
    from cyberquiz.buffer.maintainer import BufferMaintainer
    from cyberquiz.storage.base import QuestionStoreProtocol

logger = logging.getLogger(__name__)


class ResolvedSimilar(BaseModel):
    """An advisory neighbour resolved to the stored question."""

    model_config = {"frozen": True}

    question: Question
    similarity: float


class SimilarQuestions(BaseModel):
    """A question with its advisory near-duplicates, for side-by-side review."""

    question: Question
    similar: list[ResolvedSimilar]


class ReviewStats(BaseModel):
    """Review counters for the admin dashboard."""

    pending: int
    accepted: int
    rejected: int
    accepted_by_category: dict[str, int]


class ReviewService:
    """Applies admin accept/reject decisions.

    Example:
        >>> review = ReviewService(store, maintainer)
        >>> await review.accept(42)
    """

    def __init__(self, store: QuestionStoreProtocol, maintainer: BufferMaintainer | None = None) -> None:
        self.store = store
        self.maintainer = maintainer

    async def _pending(self, question_id: int) -> Question:
        question = await self.store.get_question(question_id)
        if question is None or question.is_deleted:
            msg = f"Question {question_id} not found"
            raise QuestionNotFoundError(msg)
        if question.status != QuestionStatus.TO_REVIEW:
            msg = f"Question {question_id} is not pending review (status: {question.status.value})"
            raise InvalidTransitionError(msg)
        return question

    async def _refill(self) -> None:
        if self.maintainer is not None:
            await self.maintainer.ensure_filled()

    async def accept(self, question_id: int) -> Question:
        """Move a pending question to ``accepted``.

        Raises:
            QuestionNotFoundError: If the id is unknown.
            InvalidTransitionError: If the question is not ``to_review``.
        """
        await self._pending(question_id)
        updated = await self.store.update_status(question_id, QuestionStatus.ACCEPTED)
        if updated is None:
            msg = f"Question {question_id} not found"
            raise QuestionNotFoundError(msg)
        logger.info(f"Question {question_id} accepted")
        await self._refill()
        return updated

    async def reject(self, question_id: int) -> Question:
        """Move a pending question to ``rejected`` and flag it.

        Raises:
            QuestionNotFoundError: If the id is unknown.
            InvalidTransitionError: If the question is not ``to_review``.
        """
        await self._pending(question_id)
        updated = await self.store.update_status(question_id, QuestionStatus.REJECTED, is_rejected=True)
        if updated is None:
            msg = f"Question {question_id} not found"
            raise QuestionNotFoundError(msg)
        logger.info(f"Question {question_id} rejected")
        await self._refill()
        return updated

    async def bulk_accept(self, question_ids: list[int]) -> int:
        """Accept every pending question among ``question_ids``; others are skipped."""
        return await self._bulk(question_ids, QuestionStatus.ACCEPTED)

    async def bulk_reject(self, question_ids: list[int]) -> int:
        """Reject every pending question among ``question_ids``; others are skipped."""
        return await self._bulk(question_ids, QuestionStatus.REJECTED)

    async def _bulk(self, question_ids: list[int], status: QuestionStatus) -> int:
        count = 0
        for question_id in dict.fromkeys(question_ids):
            question = await self.store.get_question(question_id)
            if question is None or question.is_deleted or question.status != QuestionStatus.TO_REVIEW:
                continue
            await self.store.update_status(
                question_id,
                status,
                is_rejected=status == QuestionStatus.REJECTED,
            )
            count += 1
        logger.info(f"Bulk {status.value}: {count}/{len(question_ids)} question(s)")
        if count:
            await self._refill()
        return count

    async def list_pending(self, limit: int = 20, category: str | None = None) -> list[Question]:
        """Questions awaiting review, newest first."""
        return await self.store.list_questions(QuestionStatus.TO_REVIEW, category=category, limit=limit)

    async def stats(self) -> ReviewStats:
        """Pending, accepted and rejected totals, with accepted questions per category."""
        return ReviewStats(
            pending=await self.store.count_by_status(QuestionStatus.TO_REVIEW),
            accepted=await self.store.count_by_status(QuestionStatus.ACCEPTED),
            rejected=await self.store.count_by_status(QuestionStatus.REJECTED),
            accepted_by_category=await self.store.count_by_category(QuestionStatus.ACCEPTED),
        )

    async def similar(self, question_id: int) -> SimilarQuestions:
        """Resolve a question's advisory duplicates to the stored questions.

        Neighbours that no longer exist are skipped.

        Raises:
            QuestionNotFoundError: If the id is unknown.
        """
        question = await self.store.get_question(question_id)
        if question is None:
            msg = f"Question {question_id} not found"
            raise QuestionNotFoundError(msg)

        resolved: list[ResolvedSimilar] = []
        for entry in question.potential_duplicates:
            neighbour = await self.store.get_question(entry.id)
            if neighbour is not None:
                resolved.append(ResolvedSimilar(question=neighbour, similarity=entry.similarity))
        return SimilarQuestions(question=question, similar=resolved)
