"""Contract tests shared by the in-memory and SQL question stores."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

import pytest
from fakes import make_question

from cyberquiz.core.types import (
    DetectionMethod,
    DuplicateLogEntry,
    GenerationSettings,
    GenerationSlot,
    QuestionStatus,
    SimilarQuestion,
    utcnow,
)
from cyberquiz.storage.base import QuestionStoreProtocol
from cyberquiz.storage.memory import InMemoryQuestionStore
from cyberquiz.storage.sql import SQLQuestionStore

SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"

SLOT = GenerationSlot(domain="Cryptography", skill_type="Analysis", difficulty="Expert", granularity="Technical")

pytestmark = pytest.mark.parametrize("kind", ["memory", "sql"])


@asynccontextmanager
async def open_store(kind: str) -> AsyncIterator[QuestionStoreProtocol]:
    if kind == "memory":
        yield InMemoryQuestionStore()
        return
    async with SQLQuestionStore(SQLITE_MEMORY_URL) as store:
        yield store


def log_entry(text: str, method: DetectionMethod = DetectionMethod.HASH, **fields: object) -> DuplicateLogEntry:
    data: dict[str, object] = {
        "question_hash": f"{len(text):064d}",
        "attempted_text": text,
        "detection_method": method,
    }
    data.update(fields)
    return DuplicateLogEntry(**data)  # type: ignore[arg-type]


class TestQuestions:
    """Tests for question persistence."""

    @pytest.mark.asyncio
    async def test_protocol(self, kind: str) -> None:
        """Both stores satisfy QuestionStoreProtocol."""
        async with open_store(kind) as store:
            assert isinstance(store, QuestionStoreProtocol)

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_round_trips(self, kind: str) -> None:
        """Created questions get an id and read back unchanged."""
        async with open_store(kind) as store:
            question = make_question(
                tags=["ssh"],
                mitre_techniques=["T1021.004"],
                potential_duplicates=[SimilarQuestion(id=3, similarity=0.81)],
                context_article_ids=[5],
                ai_provider="ollama",
            )

            stored = await store.create_question(question)
            loaded = await store.get_question(stored.id or 0)

            assert stored.id is not None
            assert loaded is not None
            assert loaded.question_hash == question.question_hash
            assert loaded.tags == ["ssh"]
            assert loaded.mitre_techniques == ["T1021.004"]
            assert loaded.potential_duplicates == [SimilarQuestion(id=3, similarity=0.81)]
            assert loaded.context_article_ids == [5]
            assert loaded.created_at == question.created_at

    @pytest.mark.asyncio
    async def test_ids_are_distinct(self, kind: str) -> None:
        """Each question gets its own id."""
        async with open_store(kind) as store:
            a = await store.create_question(make_question("First statement about TLS."))
            b = await store.create_question(make_question("Second statement about TLS."))
            assert a.id != b.id

    @pytest.mark.asyncio
    async def test_get_missing(self, kind: str) -> None:
        """Unknown ids return None."""
        async with open_store(kind) as store:
            assert await store.get_question(404) is None

    @pytest.mark.asyncio
    async def test_find_by_hash_skips_deleted(self, kind: str) -> None:
        """Hash lookup ignores soft-deleted questions."""
        async with open_store(kind) as store:
            deleted = await store.create_question(make_question("Deleted statement about TLS.", is_deleted=True))
            live = await store.create_question(make_question("Live statement about TLS."))

            assert await store.find_by_hash(deleted.question_hash) is None
            found = await store.find_by_hash(live.question_hash)
            assert found is not None and found.id == live.id

    @pytest.mark.asyncio
    async def test_count_and_update_status(self, kind: str) -> None:
        """Counting by status follows status updates and skips deleted rows."""
        async with open_store(kind) as store:
            a = await store.create_question(make_question("First statement about TLS."))
            await store.create_question(make_question("Second statement about TLS."))
            await store.create_question(make_question("Deleted statement about TLS.", is_deleted=True))

            assert await store.count_by_status(QuestionStatus.TO_REVIEW) == 2
            updated = await store.update_status(a.id or 0, QuestionStatus.REJECTED, is_rejected=True)

            assert updated is not None
            assert updated.status == QuestionStatus.REJECTED
            assert updated.is_rejected
            assert await store.count_by_status(QuestionStatus.TO_REVIEW) == 1
            assert await store.count_by_status(QuestionStatus.REJECTED) == 1
            assert await store.update_status(404, QuestionStatus.ACCEPTED) is None

    @pytest.mark.asyncio
    async def test_list_questions(self, kind: str) -> None:
        """Listing filters by status and category, newest first."""
        async with open_store(kind) as store:
            now = utcnow()
            old = await store.create_question(
                make_question("Old statement about TLS.", category="Cryptography", created_at=now - timedelta(hours=2))
            )
            new = await store.create_question(make_question("New statement about TLS.", category="Cryptography"))
            await store.create_question(make_question("Statement about VLANs.", category="Network Security"))
            await store.create_question(
                make_question("Accepted statement.", status=QuestionStatus.ACCEPTED, category="Cryptography")
            )

            listed = await store.list_questions(QuestionStatus.TO_REVIEW, category="Cryptography")

            assert [q.id for q in listed] == [new.id, old.id]
            assert len(await store.list_questions(limit=2)) == 2

    @pytest.mark.asyncio
    async def test_count_created_since(self, kind: str) -> None:
        """Creation counts honour the window and topic."""
        async with open_store(kind) as store:
            now = utcnow()
            await store.create_question(make_question("Recent crypto statement.", category="Cryptography"))
            await store.create_question(make_question("Recent network statement.", category="Network Security"))
            await store.create_question(make_question("Old statement.", created_at=now - timedelta(days=3)))

            since = now - timedelta(hours=24)
            assert await store.count_created_since(since) == 2
            assert await store.count_created_since(since, topic="Cryptography") == 1

    @pytest.mark.asyncio
    async def test_count_by_category(self, kind: str) -> None:
        """Per-category counts cover one status and skip deleted questions."""
        async with open_store(kind) as store:
            await store.create_question(
                make_question("Accepted crypto statement.", status=QuestionStatus.ACCEPTED, category="Cryptography")
            )
            await store.create_question(
                make_question("Another accepted crypto one.", status=QuestionStatus.ACCEPTED, category="Cryptography")
            )
            await store.create_question(
                make_question("Accepted network statement.", status=QuestionStatus.ACCEPTED, category="Network Security")
            )
            await store.create_question(make_question("Pending crypto statement.", category="Cryptography"))
            await store.create_question(
                make_question(
                    "Deleted accepted statement.", status=QuestionStatus.ACCEPTED, category="Phishing", is_deleted=True
                )
            )

            counts = await store.count_by_category(QuestionStatus.ACCEPTED)

            assert counts == {"Cryptography": 2, "Network Security": 1}
            assert await store.count_by_category(QuestionStatus.REJECTED) == {}


class TestSlotHistory:
    """Tests for slot history."""

    @pytest.mark.asyncio
    async def test_recent_slots_window_and_limit(self, kind: str) -> None:
        """Only slots inside the window are returned, newest first, up to the limit."""
        async with open_store(kind) as store:
            now = utcnow()
            other = SLOT.model_copy(update={"domain": "Network Security"})
            await store.record_slot(SLOT, now - timedelta(hours=30))
            await store.record_slot(other, now - timedelta(hours=2))
            await store.record_slot(SLOT, now - timedelta(hours=1))

            recent = await store.recent_slots(now - timedelta(hours=24), limit=10)
            assert recent == [SLOT, other]
            assert await store.recent_slots(now - timedelta(hours=24), limit=1) == [SLOT]

    @pytest.mark.asyncio
    async def test_link_slot(self, kind: str) -> None:
        """Linking fills the newest unlinked row once."""
        async with open_store(kind) as store:
            question = await store.create_question(make_question())
            await store.record_slot(SLOT, utcnow())

            assert await store.link_slot(SLOT, question.id or 0) is True
            assert await store.link_slot(SLOT, question.id or 0) is False

    @pytest.mark.asyncio
    async def test_purge(self, kind: str) -> None:
        """Purging deletes rows older than the cutoff."""
        async with open_store(kind) as store:
            now = utcnow()
            await store.record_slot(SLOT, now - timedelta(hours=50))
            await store.record_slot(SLOT, now - timedelta(hours=1))

            assert await store.purge_slot_history(now - timedelta(hours=48)) == 1
            assert len(await store.recent_slots(now - timedelta(days=10), limit=10)) == 1


class TestDuplicateLog:
    """Tests for the duplicate log."""

    @pytest.mark.asyncio
    async def test_add_and_list(self, kind: str) -> None:
        """Entries are listed newest first with filters."""
        async with open_store(kind) as store:
            now = utcnow()
            await store.add_duplicate_log(log_entry("old one", created_at=now - timedelta(days=2), topic="Cryptography"))
            await store.add_duplicate_log(
                log_entry("semantic", DetectionMethod.EMBEDDING, similarity_score=0.97, topic="Cryptography")
            )
            await store.add_duplicate_log(log_entry("exact", topic="Network Security"))

            all_logs = await store.list_duplicate_logs()
            recent = await store.list_duplicate_logs(since=now - timedelta(hours=24))
            crypto = await store.list_duplicate_logs(topic="Cryptography")

            assert all(entry.id is not None for entry in all_logs)
            assert all_logs[-1].attempted_text == "old one"
            assert len(recent) == 2
            assert {entry.attempted_text for entry in crypto} == {"old one", "semantic"}
            assert len(await store.list_duplicate_logs(limit=1)) == 1
            semantic = next(entry for entry in all_logs if entry.attempted_text == "semantic")
            assert semantic.detection_method == DetectionMethod.EMBEDDING
            assert semantic.similarity_score == 0.97


class TestSettings:
    """Tests for generation settings."""

    @pytest.mark.asyncio
    async def test_defaults_created(self, kind: str) -> None:
        """Settings are created with defaults on first read."""
        async with open_store(kind) as store:
            settings = await store.get_settings()
            assert settings.buffer_size == 10
            assert settings.auto_refill_enabled
            assert not settings.structured_space_enabled

    @pytest.mark.asyncio
    async def test_save_round_trip(self, kind: str) -> None:
        """Saved settings are returned by later reads."""
        async with open_store(kind) as store:
            before = await store.get_settings()
            saved = await store.save_settings(
                GenerationSettings(buffer_size=25, structured_space_enabled=True, enabled_domains=["Cryptography"])
            )
            loaded = await store.get_settings()

            assert saved.buffer_size == loaded.buffer_size == 25
            assert loaded.structured_space_enabled
            assert loaded.enabled_domains == ["Cryptography"]
            assert loaded.updated_at >= before.updated_at
