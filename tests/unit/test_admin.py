"""Tests for admin services."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fakes import make_question

from cyberquiz.admin.review import ReviewService
from cyberquiz.admin.settings import SettingsService, SettingsUpdate
from cyberquiz.admin.stats import DuplicateStatsService, cycling_rate
from cyberquiz.core.exceptions import ConfigurationError, InvalidTransitionError, QuestionNotFoundError
from cyberquiz.core.types import (
    DetectionMethod,
    DuplicateLogEntry,
    GenerationSettings,
    QuestionStatus,
    SimilarQuestion,
    utcnow,
)
from cyberquiz.storage.memory import InMemoryQuestionStore


def mock_maintainer() -> MagicMock:
    maintainer = MagicMock()
    maintainer.ensure_filled = AsyncMock(return_value=1)
    return maintainer


class TestReviewService:
    """Tests for ReviewService."""

    @pytest.mark.asyncio
    async def test_accept(self, store: InMemoryQuestionStore) -> None:
        """Accepting moves the question out of the pool and triggers a refill."""
        question = await store.create_question(make_question())
        maintainer = mock_maintainer()
        review = ReviewService(store, maintainer)

        accepted = await review.accept(question.id or 0)

        assert accepted.status == QuestionStatus.ACCEPTED
        assert not accepted.is_rejected
        assert await store.count_by_status(QuestionStatus.TO_REVIEW) == 0
        maintainer.ensure_filled.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reject_flags(self, store: InMemoryQuestionStore) -> None:
        """Rejecting sets the rejected status and flag."""
        question = await store.create_question(make_question())
        review = ReviewService(store, mock_maintainer())

        rejected = await review.reject(question.id or 0)

        assert rejected.status == QuestionStatus.REJECTED
        assert rejected.is_rejected

    @pytest.mark.asyncio
    async def test_rejected_hash_still_blocks(self, store: InMemoryQuestionStore) -> None:
        """Rejected questions stay visible to the hash stage."""
        question = await store.create_question(make_question())
        await ReviewService(store).reject(question.id or 0)

        assert await store.find_by_hash(question.question_hash) is not None

    @pytest.mark.asyncio
    async def test_unknown_question(self, store: InMemoryQuestionStore) -> None:
        """Unknown ids raise QuestionNotFoundError."""
        review = ReviewService(store)

        with pytest.raises(QuestionNotFoundError):
            await review.accept(404)

    @pytest.mark.asyncio
    async def test_already_decided(self, store: InMemoryQuestionStore) -> None:
        """A decided question cannot be decided again."""
        question = await store.create_question(make_question())
        maintainer = mock_maintainer()
        review = ReviewService(store, maintainer)
        await review.accept(question.id or 0)

        with pytest.raises(InvalidTransitionError):
            await review.reject(question.id or 0)
        assert maintainer.ensure_filled.await_count == 1

    @pytest.mark.asyncio
    async def test_bulk(self, store: InMemoryQuestionStore) -> None:
        """Bulk decisions skip unknown and already-decided questions and refill once."""
        a = await store.create_question(make_question("First statement about TLS."))
        b = await store.create_question(make_question("Second statement about TLS."))
        c = await store.create_question(make_question("Decided statement.", status=QuestionStatus.ACCEPTED))
        maintainer = mock_maintainer()
        review = ReviewService(store, maintainer)

        count = await review.bulk_reject([a.id or 0, b.id or 0, c.id or 0, 404, a.id or 0])

        assert count == 2
        assert await store.count_by_status(QuestionStatus.REJECTED) == 2
        maintainer.ensure_filled.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bulk_nothing_to_do(self, store: InMemoryQuestionStore) -> None:
        """No refill when nothing changed."""
        maintainer = mock_maintainer()

        assert await ReviewService(store, maintainer).bulk_accept([404]) == 0
        maintainer.ensure_filled.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_pending(self, store: InMemoryQuestionStore) -> None:
        """Pending questions are listed, optionally by category."""
        await store.create_question(make_question("Crypto statement.", category="Cryptography"))
        await store.create_question(make_question("Network statement.", category="Network Security"))
        await store.create_question(make_question("Done statement.", status=QuestionStatus.ACCEPTED))
        review = ReviewService(store)

        assert len(await review.list_pending()) == 2
        crypto = await review.list_pending(category="Cryptography")
        assert [q.category for q in crypto] == ["Cryptography"]

    @pytest.mark.asyncio
    async def test_similar(self, store: InMemoryQuestionStore) -> None:
        """Advisory neighbours are resolved to questions; missing ones are skipped."""
        neighbour = await store.create_question(make_question("Neighbour statement about TLS."))
        question = await store.create_question(
            make_question(
                "Statement about TLS handshakes.",
                potential_duplicates=[
                    SimilarQuestion(id=neighbour.id or 0, similarity=0.82),
                    SimilarQuestion(id=999, similarity=0.80),
                ],
            )
        )

        result = await ReviewService(store).similar(question.id or 0)

        assert result.question.id == question.id
        assert [(s.question.id, s.similarity) for s in result.similar] == [(neighbour.id, 0.82)]

    @pytest.mark.asyncio
    async def test_stats(self, store: InMemoryQuestionStore) -> None:
        """Stats count each review state and accepted questions per category."""
        review = ReviewService(store, mock_maintainer())
        a = await store.create_question(make_question("Crypto statement one.", category="Cryptography"))
        b = await store.create_question(make_question("Crypto statement two.", category="Cryptography"))
        c = await store.create_question(make_question("Network statement.", category="Network Security"))
        await store.create_question(make_question("Still pending statement."))
        await review.accept(a.id or 0)
        await review.accept(b.id or 0)
        await review.reject(c.id or 0)

        stats = await review.stats()

        assert stats.pending == 1
        assert stats.accepted == 2
        assert stats.rejected == 1
        assert stats.accepted_by_category == {"Cryptography": 2}


class TestSettingsService:
    """Tests for SettingsService."""

    @pytest.mark.asyncio
    async def test_partial_update(self, store: InMemoryQuestionStore) -> None:
        """Omitted fields keep their value."""
        service = SettingsService(store)

        saved = await service.update(SettingsUpdate(structured_space_enabled=True, enabled_domains=["Cryptography"]))

        assert saved.structured_space_enabled
        assert saved.enabled_domains == ["Cryptography"]
        assert saved.buffer_size == 10
        assert (await service.get()).enabled_domains == ["Cryptography"]

    @pytest.mark.asyncio
    async def test_target_change_triggers_refill(self, store: InMemoryQuestionStore) -> None:
        """Changing the target with refill on triggers ensure_filled."""
        maintainer = mock_maintainer()

        await SettingsService(store, maintainer).update(SettingsUpdate(buffer_size=20))

        maintainer.ensure_filled.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_enabling_refill_triggers(self, store: InMemoryQuestionStore) -> None:
        """Switching auto-refill on triggers ensure_filled."""
        await store.save_settings(GenerationSettings(auto_refill_enabled=False))
        maintainer = mock_maintainer()

        await SettingsService(store, maintainer).update(SettingsUpdate(auto_refill_enabled=True))

        maintainer.ensure_filled.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unrelated_change_does_not_trigger(self, store: InMemoryQuestionStore) -> None:
        """Other changes leave the pool alone."""
        maintainer = mock_maintainer()

        await SettingsService(store, maintainer).update(SettingsUpdate(use_context=True))
        await SettingsService(store, maintainer).update(SettingsUpdate(buffer_size=10))

        maintainer.ensure_filled.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refill_off_does_not_trigger(self, store: InMemoryQuestionStore) -> None:
        """With refill off a new target does not start generation."""
        maintainer = mock_maintainer()

        await SettingsService(store, maintainer).update(SettingsUpdate(buffer_size=30, auto_refill_enabled=False))

        maintainer.ensure_filled.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [{"buffer_size": -1}, {"enabled_domains": []}, {"enabled_granularities": []}, {"unknown": 1}],
    )
    async def test_invalid_update(self, store: InMemoryQuestionStore, payload: dict[str, object]) -> None:
        """Invalid mappings raise ConfigurationError and change nothing."""
        with pytest.raises(ConfigurationError):
            await SettingsService(store).update(payload)

        assert (await store.get_settings()).buffer_size == 10


class TestDuplicateStats:
    """Tests for DuplicateStatsService."""

    def test_cycling_rate(self) -> None:
        """Rate is duplicates over attempts, as a percentage."""
        assert cycling_rate(0, 0) == 0.0
        assert cycling_rate(3, 0) == 100.0
        assert cycling_rate(1, 3) == 25.0
        assert cycling_rate(1, 2) == 33.33

    @pytest.mark.asyncio
    async def test_stats(self, store: InMemoryQuestionStore) -> None:
        """Totals, method split, generated count and top hashes are computed over the window."""
        now = utcnow()
        for text, method, topic in [
            ("a", DetectionMethod.HASH, "Cryptography"),
            ("a", DetectionMethod.HASH, "Cryptography"),
            ("a", DetectionMethod.HASH, "Cryptography"),
            ("b", DetectionMethod.EMBEDDING, "Network Security"),
        ]:
            await store.add_duplicate_log(
                DuplicateLogEntry(
                    question_hash=text * 64,
                    attempted_text=f"attempt {text}",
                    detection_method=method,
                    topic=topic,
                )
            )
        await store.add_duplicate_log(
            DuplicateLogEntry(
                question_hash="c" * 64,
                attempted_text="too old",
                detection_method=DetectionMethod.HASH,
                created_at=now - timedelta(days=3),
            )
        )
        await store.create_question(make_question("Stored crypto statement.", category="Cryptography"))

        stats = await DuplicateStatsService(store).stats(hours=24)

        assert stats.total_duplicates == 4
        assert stats.hash_duplicates == 3
        assert stats.embedding_duplicates == 1
        assert stats.total_generated == 1
        assert stats.cycling_rate == 80.0
        assert stats.top_duplicates[0].question_hash == "a" * 64
        assert stats.top_duplicates[0].count == 3
        assert len(stats.top_duplicates[0].examples) == 2

    @pytest.mark.asyncio
    async def test_stats_by_topic(self, store: InMemoryQuestionStore) -> None:
        """The topic filter applies to duplicates and generated questions."""
        await store.add_duplicate_log(
            DuplicateLogEntry(
                question_hash="b" * 64,
                attempted_text="attempt b",
                detection_method=DetectionMethod.EMBEDDING,
                similarity_score=0.97,
                topic="Network Security",
            )
        )
        await store.create_question(make_question("Stored crypto statement.", category="Cryptography"))

        stats = await DuplicateStatsService(store).stats(topic="Cryptography")

        assert stats.total_duplicates == 0
        assert stats.total_generated == 1
        assert stats.cycling_rate == 0.0

    @pytest.mark.asyncio
    async def test_recent(self, store: InMemoryQuestionStore) -> None:
        """Recent entries come newest first."""
        for i in range(3):
            await store.add_duplicate_log(
                DuplicateLogEntry(
                    question_hash=str(i) * 64,
                    attempted_text=f"attempt {i}",
                    detection_method=DetectionMethod.HASH,
                    created_at=utcnow() + timedelta(seconds=i),
                )
            )

        recent = await DuplicateStatsService(store).recent(limit=2)

        assert [entry.attempted_text for entry in recent] == ["attempt 2", "attempt 1"]
