"""SQLAlchemy async question store for cyberquiz.

This module provides the relational QuestionStoreProtocol implementation,
backed by SQLAlchemy 2.0's asyncio extension. SQLite (via aiosqlite) is
the default backend; any async driver SQLAlchemy supports will work.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cyberquiz.core.types import (
    DetectionMethod,
    DuplicateLogEntry,
    GenerationSettings,
    GenerationSlot,
    Question,
    QuestionStatus,
    SimilarQuestion,
    SlotHistoryEntry,
    utcnow,
)
from cyberquiz.storage.orm import (
    Base,
    DuplicateLogRow,
    GenerationSettingsRow,
    QuestionRow,
    SlotHistoryRow,
)

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1


def _aware(value: datetime) -> datetime:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_question(row: QuestionRow) -> Question:
    return Question(
        id=row.id,
        question_text=row.question_text,
        question_hash=row.question_hash,
        options=list(row.options),
        correct_answer=row.correct_answer,
        explanation=row.explanation,
        difficulty=row.difficulty,
        status=QuestionStatus(row.status),
        is_rejected=row.is_rejected,
        is_deleted=row.is_deleted,
        category=row.category,
        question_type=row.question_type,
        generation_domain=row.generation_domain,
        generation_skill_type=row.generation_skill_type,
        generation_difficulty=row.generation_difficulty,
        generation_granularity=row.generation_granularity,
        tags=list(row.tags or []),
        mitre_techniques=list(row.mitre_techniques or []),
        potential_duplicates=[SimilarQuestion(**d) for d in row.potential_duplicates or []],
        ai_provider=row.ai_provider,
        context_article_ids=list(row.context_article_ids or []),
        context_source_ids=list(row.context_source_ids or []),
        created_at=_aware(row.created_at),
    )


def _to_log_entry(row: DuplicateLogRow) -> DuplicateLogEntry:
    return DuplicateLogEntry(
        id=row.id,
        question_hash=row.question_hash,
        attempted_text=row.attempted_text,
        detection_method=DetectionMethod(row.detection_method),
        similarity_score=row.similarity_score,
        original_question_id=row.original_question_id,
        topic=row.topic,
        created_at=_aware(row.created_at),
    )


def _to_settings(row: GenerationSettingsRow) -> GenerationSettings:
    return GenerationSettings(
        buffer_size=row.buffer_size,
        auto_refill_enabled=row.auto_refill_enabled,
        structured_space_enabled=row.structured_space_enabled,
        enabled_domains=list(row.enabled_domains),
        enabled_skill_types=list(row.enabled_skill_types),
        enabled_difficulties=list(row.enabled_difficulties),
        enabled_granularities=list(row.enabled_granularities),
        use_context=row.use_context,
        default_topic=row.default_topic,
        updated_at=_aware(row.updated_at),
    )


def _slot_of(row: SlotHistoryRow) -> GenerationSlot:
    return GenerationSlot(
        domain=row.domain,
        skill_type=row.skill_type,
        difficulty=row.difficulty,
        granularity=row.granularity,
    )


class SQLQuestionStore:
    """Question store backed by a relational database.

    Can be used as an async context manager, which creates the tables on
    entry and disposes of the engine on exit.

    Attributes:
        database_url: SQLAlchemy async URL.

    Example:
        >>> async with SQLQuestionStore("sqlite+aiosqlite:///./cyberquiz.db") as store:
        ...     pending = await store.count_by_status(QuestionStatus.TO_REVIEW)
    """

    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        """Initialize the store.

        Args:
            database_url: SQLAlchemy async URL, e.g. ``sqlite+aiosqlite:///:memory:``.
            echo: Log every SQL statement.
        """
        self.database_url = database_url
        engine_kwargs: dict[str, object] = {"echo": echo}
        if ":memory:" in database_url:
            # one shared connection, otherwise each session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True
        self._engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)
        self._sessions = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def __aenter__(self) -> SQLQuestionStore:
        await self.init()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def init(self) -> None:
        """Create tables if they don't exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug(f"Question store ready at {self._engine.url.render_as_string(hide_password=True)}")

    async def aclose(self) -> None:
        """Close database connections."""
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    async def create_question(self, question: Question) -> Question:
        row = QuestionRow(
            question_text=question.question_text,
            question_hash=question.question_hash,
            options=list(question.options),
            correct_answer=question.correct_answer,
            explanation=question.explanation,
            difficulty=question.difficulty,
            status=question.status.value,
            is_rejected=question.is_rejected,
            is_deleted=question.is_deleted,
            category=question.category,
            question_type=question.question_type,
            generation_domain=question.generation_domain,
            generation_skill_type=question.generation_skill_type,
            generation_difficulty=question.generation_difficulty,
            generation_granularity=question.generation_granularity,
            tags=list(question.tags),
            mitre_techniques=list(question.mitre_techniques),
            potential_duplicates=[d.model_dump() for d in question.potential_duplicates],
            ai_provider=question.ai_provider,
            context_article_ids=list(question.context_article_ids),
            context_source_ids=list(question.context_source_ids),
            created_at=question.created_at,
        )
        async with self._sessions() as session:
            session.add(row)
            await session.commit()
            return _to_question(row)

    async def get_question(self, question_id: int) -> Question | None:
        async with self._sessions() as session:
            row = await session.get(QuestionRow, question_id)
            return _to_question(row) if row is not None else None

    async def find_by_hash(self, question_hash: str) -> Question | None:
        stmt = (
            select(QuestionRow)
            .where(QuestionRow.question_hash == question_hash, QuestionRow.is_deleted.is_(False))
            .order_by(QuestionRow.id)
            .limit(1)
        )
        async with self._sessions() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _to_question(row) if row is not None else None

    async def count_by_status(self, status: QuestionStatus) -> int:
        stmt = select(func.count(QuestionRow.id)).where(
            QuestionRow.status == status.value,
            QuestionRow.is_deleted.is_(False),
        )
        async with self._sessions() as session:
            return int((await session.execute(stmt)).scalar_one())

    async def count_by_category(self, status: QuestionStatus) -> dict[str, int]:
        stmt = (
            select(QuestionRow.category, func.count(QuestionRow.id))
            .where(QuestionRow.status == status.value, QuestionRow.is_deleted.is_(False))
            .group_by(QuestionRow.category)
        )
        async with self._sessions() as session:
            return {category: int(count) for category, count in (await session.execute(stmt)).all()}

    async def update_status(
        self,
        question_id: int,
        status: QuestionStatus,
        *,
        is_rejected: bool = False,
    ) -> Question | None:
        async with self._sessions() as session:
            row = await session.get(QuestionRow, question_id)
            if row is None:
                return None
            row.status = status.value
            row.is_rejected = is_rejected
            await session.commit()
            return _to_question(row)

    async def list_questions(
        self,
        status: QuestionStatus | None = None,
        category: str | None = None,
        limit: int = 50,
    ) -> list[Question]:
        stmt = select(QuestionRow).where(QuestionRow.is_deleted.is_(False))
        if status is not None:
            stmt = stmt.where(QuestionRow.status == status.value)
        if category is not None:
            stmt = stmt.where(QuestionRow.category == category)
        stmt = stmt.order_by(QuestionRow.created_at.desc(), QuestionRow.id.desc()).limit(limit)
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_question(row) for row in rows]

    async def count_created_since(self, since: datetime, topic: str | None = None) -> int:
        stmt = select(func.count(QuestionRow.id)).where(QuestionRow.created_at >= since)
        if topic is not None:
            stmt = stmt.where(QuestionRow.category == topic)
        async with self._sessions() as session:
            return int((await session.execute(stmt)).scalar_one())

    # ------------------------------------------------------------------
    # Slot history
    # ------------------------------------------------------------------

    async def record_slot(self, slot: GenerationSlot, used_at: datetime) -> SlotHistoryEntry:
        row = SlotHistoryRow(
            domain=slot.domain,
            skill_type=slot.skill_type,
            difficulty=slot.difficulty,
            granularity=slot.granularity,
            used_at=used_at,
        )
        async with self._sessions() as session:
            session.add(row)
            await session.commit()
            return SlotHistoryEntry(id=row.id, slot=slot, used_at=_aware(row.used_at))

    async def recent_slots(self, since: datetime, limit: int) -> list[GenerationSlot]:
        stmt = (
            select(SlotHistoryRow)
            .where(SlotHistoryRow.used_at >= since)
            .order_by(SlotHistoryRow.used_at.desc(), SlotHistoryRow.id.desc())
            .limit(limit)
        )
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_slot_of(row) for row in rows]

    async def link_slot(self, slot: GenerationSlot, question_id: int) -> bool:
        stmt = (
            select(SlotHistoryRow)
            .where(
                SlotHistoryRow.domain == slot.domain,
                SlotHistoryRow.skill_type == slot.skill_type,
                SlotHistoryRow.difficulty == slot.difficulty,
                SlotHistoryRow.granularity == slot.granularity,
                SlotHistoryRow.question_id.is_(None),
            )
            .order_by(SlotHistoryRow.used_at.desc(), SlotHistoryRow.id.desc())
            .limit(1)
        )
        async with self._sessions() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
                return False
            row.question_id = question_id
            await session.commit()
            return True

    async def purge_slot_history(self, before: datetime) -> int:
        async with self._sessions() as session:
            result = await session.execute(delete(SlotHistoryRow).where(SlotHistoryRow.used_at < before))
            await session.commit()
            return int(result.rowcount or 0)

    # ------------------------------------------------------------------
    # Duplicate log
    # ------------------------------------------------------------------

    async def add_duplicate_log(self, entry: DuplicateLogEntry) -> DuplicateLogEntry:
        row = DuplicateLogRow(
            question_hash=entry.question_hash,
            attempted_text=entry.attempted_text,
            detection_method=entry.detection_method.value,
            similarity_score=entry.similarity_score,
            original_question_id=entry.original_question_id,
            topic=entry.topic,
            created_at=entry.created_at,
        )
        async with self._sessions() as session:
            session.add(row)
            await session.commit()
            return _to_log_entry(row)

    async def list_duplicate_logs(
        self,
        since: datetime | None = None,
        topic: str | None = None,
        limit: int | None = None,
    ) -> list[DuplicateLogEntry]:
        stmt = select(DuplicateLogRow)
        if since is not None:
            stmt = stmt.where(DuplicateLogRow.created_at >= since)
        if topic is not None:
            stmt = stmt.where(DuplicateLogRow.topic == topic)
        stmt = stmt.order_by(DuplicateLogRow.created_at.desc(), DuplicateLogRow.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_log_entry(row) for row in rows]

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self) -> GenerationSettings:
        async with self._sessions() as session:
            row = await session.get(GenerationSettingsRow, SETTINGS_ROW_ID)
            if row is None:
                defaults = GenerationSettings()
                row = GenerationSettingsRow(id=SETTINGS_ROW_ID, **defaults.model_dump())
                session.add(row)
                await session.commit()
                logger.info("Created default generation settings")
            return _to_settings(row)

    async def save_settings(self, settings: GenerationSettings) -> GenerationSettings:
        values = settings.model_dump()
        values["updated_at"] = utcnow()
        async with self._sessions() as session:
            row = await session.get(GenerationSettingsRow, SETTINGS_ROW_ID)
            if row is None:
                row = GenerationSettingsRow(id=SETTINGS_ROW_ID, **values)
                session.add(row)
            else:
                for key, value in values.items():
                    setattr(row, key, value)
            await session.commit()
            return _to_settings(row)
