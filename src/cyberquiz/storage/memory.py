"""In-memory question store implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cyberquiz.core.types import (
    DuplicateLogEntry,
    GenerationSettings,
    GenerationSlot,
    Question,
    QuestionStatus,
    SlotHistoryEntry,
    utcnow,
)

if TYPE_CHECKING:
    from datetime import datetime


class InMemoryQuestionStore:
    """Dictionary-backed question store. Data is lost when the process exits.

    Used by the tests and by the CLI's ``memory`` database URL.

    Example:
        >>> store = InMemoryQuestionStore()
        >>> q = await store.create_question(question)
        >>> await store.count_by_status(QuestionStatus.TO_REVIEW)
        1
    """

    def __init__(self, settings: GenerationSettings | None = None) -> None:
        """Initialize the store.

        Args:
            settings: Initial generation settings. Defaults are created lazily.
        """
        self._questions: dict[int, Question] = {}
        self._slot_history: list[SlotHistoryEntry] = []
        self._duplicate_logs: list[DuplicateLogEntry] = []
        self._settings = settings
        self._next_question_id = 1
        self._next_history_id = 1
        self._next_log_id = 1

    def _live(self) -> list[Question]:
        return [q for q in self._questions.values() if not q.is_deleted]

    async def create_question(self, question: Question) -> Question:
        stored = question.model_copy(update={"id": self._next_question_id})
        self._questions[self._next_question_id] = stored
        self._next_question_id += 1
        return stored

    async def get_question(self, question_id: int) -> Question | None:
        return self._questions.get(question_id)

    async def find_by_hash(self, question_hash: str) -> Question | None:
        for question in self._live():
            if question.question_hash == question_hash:
                return question
        return None

    async def count_by_status(self, status: QuestionStatus) -> int:
        return sum(1 for q in self._live() if q.status == status)

    async def count_by_category(self, status: QuestionStatus) -> dict[str, int]:
        counts: dict[str, int] = {}
        for question in self._live():
            if question.status == status:
                counts[question.category] = counts.get(question.category, 0) + 1
        return counts

    async def update_status(
        self,
        question_id: int,
        status: QuestionStatus,
        *,
        is_rejected: bool = False,
    ) -> Question | None:
        question = self._questions.get(question_id)
        if question is None:
            return None
        updated = question.model_copy(update={"status": status, "is_rejected": is_rejected})
        self._questions[question_id] = updated
        return updated

    async def list_questions(
        self,
        status: QuestionStatus | None = None,
        category: str | None = None,
        limit: int = 50,
    ) -> list[Question]:
        questions = [
            q
            for q in self._live()
            if (status is None or q.status == status) and (category is None or q.category == category)
        ]
        questions.sort(key=lambda q: (q.created_at, q.id or 0), reverse=True)
        return questions[:limit]

    async def count_created_since(self, since: datetime, topic: str | None = None) -> int:
        return sum(
            1
            for q in self._questions.values()
            if q.created_at >= since and (topic is None or q.category == topic)
        )

    async def record_slot(self, slot: GenerationSlot, used_at: datetime) -> SlotHistoryEntry:
        entry = SlotHistoryEntry(id=self._next_history_id, slot=slot, used_at=used_at)
        self._next_history_id += 1
        self._slot_history.append(entry)
        return entry

    async def recent_slots(self, since: datetime, limit: int) -> list[GenerationSlot]:
        recent = [e for e in self._slot_history if e.used_at >= since]
        recent.sort(key=lambda e: (e.used_at, e.id or 0), reverse=True)
        return [e.slot for e in recent[:limit]]

    async def link_slot(self, slot: GenerationSlot, question_id: int) -> bool:
        for entry in sorted(self._slot_history, key=lambda e: (e.used_at, e.id or 0), reverse=True):
            if entry.question_id is None and entry.slot == slot:
                entry.question_id = question_id
                return True
        return False

    async def purge_slot_history(self, before: datetime) -> int:
        kept = [e for e in self._slot_history if e.used_at >= before]
        removed = len(self._slot_history) - len(kept)
        self._slot_history = kept
        return removed

    async def add_duplicate_log(self, entry: DuplicateLogEntry) -> DuplicateLogEntry:
        stored = entry.model_copy(update={"id": self._next_log_id})
        self._next_log_id += 1
        self._duplicate_logs.append(stored)
        return stored

    async def list_duplicate_logs(
        self,
        since: datetime | None = None,
        topic: str | None = None,
        limit: int | None = None,
    ) -> list[DuplicateLogEntry]:
        logs = [
            e
            for e in self._duplicate_logs
            if (since is None or e.created_at >= since) and (topic is None or e.topic == topic)
        ]
        logs.sort(key=lambda e: (e.created_at, e.id or 0), reverse=True)
        return logs if limit is None else logs[:limit]

    async def get_settings(self) -> GenerationSettings:
        if self._settings is None:
            self._settings = GenerationSettings()
        return self._settings.model_copy(deep=True)

    async def save_settings(self, settings: GenerationSettings) -> GenerationSettings:
        self._settings = settings.model_copy(update={"updated_at": utcnow()}, deep=True)
        return self._settings.model_copy(deep=True)
