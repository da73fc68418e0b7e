"""Question store protocol for cyberquiz."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from cyberquiz.core.types import (
        DuplicateLogEntry,
        GenerationSettings,
        GenerationSlot,
        Question,
        QuestionStatus,
        SlotHistoryEntry,
    )


@runtime_checkable
class QuestionStoreProtocol(Protocol):
    """Protocol for the relational question store.

    Holds questions and their lifecycle status, the slot history used by
    the sampler, the duplicate audit log and the admin generation settings.
    Soft-deleted questions are invisible to every read except get_question.
    """

    # Questions

    async def create_question(self, question: Question) -> Question:
        """Persist a new question.

        Args:
            question: Question without an id.

        Returns:
            The stored question with its assigned id.
        """
        ...

    async def get_question(self, question_id: int) -> Question | None:
        """Fetch a question by id, or None if unknown."""
        ...

    async def find_by_hash(self, question_hash: str) -> Question | None:
        """Fetch a non-deleted question with the given normalized-text hash."""
        ...

    async def count_by_status(self, status: QuestionStatus) -> int:
        """Count non-deleted questions in a given status."""
        ...

    async def count_by_category(self, status: QuestionStatus) -> dict[str, int]:
        """Count non-deleted questions in a given status, per category."""
        ...

    async def update_status(
        self,
        question_id: int,
        status: QuestionStatus,
        *,
        is_rejected: bool = False,
    ) -> Question | None:
        """Set a question's review status.

        Returns:
            The updated question, or None if the id is unknown.
        """
        ...

    async def list_questions(
        self,
        status: QuestionStatus | None = None,
        category: str | None = None,
        limit: int = 50,
    ) -> list[Question]:
        """List non-deleted questions, newest first, optionally filtered by status and category."""
        ...

    async def count_created_since(self, since: datetime, topic: str | None = None) -> int:
        """Count questions created at or after ``since``, optionally for one category."""
        ...

    # Slot history

    async def record_slot(self, slot: GenerationSlot, used_at: datetime) -> SlotHistoryEntry:
        """Append a slot usage row with no linked question."""
        ...

    async def recent_slots(self, since: datetime, limit: int) -> list[GenerationSlot]:
        """Slots used at or after ``since``, most recent first, at most ``limit``."""
        ...

    async def link_slot(self, slot: GenerationSlot, question_id: int) -> bool:
        """Attach a question id to the most recent unlinked row for ``slot``.

        Returns:
            True if a row was linked.
        """
        ...

    async def purge_slot_history(self, before: datetime) -> int:
        """Delete slot history rows older than ``before``; return the count."""
        ...

    # Duplicate log

    async def add_duplicate_log(self, entry: DuplicateLogEntry) -> DuplicateLogEntry:
        """Append an entry to the duplicate audit log."""
        ...

    async def list_duplicate_logs(
        self,
        since: datetime | None = None,
        topic: str | None = None,
        limit: int | None = None,
    ) -> list[DuplicateLogEntry]:
        """Duplicate log entries, newest first."""
        ...

    # Settings

    async def get_settings(self) -> GenerationSettings:
        """Return the generation settings, creating the defaults on first read."""
        ...

    async def save_settings(self, settings: GenerationSettings) -> GenerationSettings:
        """Replace the generation settings."""
        ...
