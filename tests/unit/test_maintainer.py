"""Tests for the buffer maintainer."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fakes import FakeLLM, make_question, make_worker

from cyberquiz.adapters.vectorstore.memory import InMemoryVectorStore
from cyberquiz.admin.review import ReviewService
from cyberquiz.buffer.maintainer import BufferMaintainer
from cyberquiz.core.exceptions import ConfigurationError, GenerationFailed
from cyberquiz.core.types import GenerationSettings, Question, QuestionStatus
from cyberquiz.storage.memory import InMemoryQuestionStore


class GatedWorker:
    """Worker whose jobs block until the gate opens; tracks concurrency."""

    def __init__(self, store: InMemoryQuestionStore) -> None:
        self.store = store
        self.gate = asyncio.Event()
        self.calls = 0
        self.running = 0
        self.max_running = 0

    async def generate_one(self, *, on_stored: Callable[[Question], None] | None = None) -> Question:
        self.calls += 1
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            await self.gate.wait()
            question = await self.store.create_question(make_question(f"Gated statement number {self.calls} about TLS."))
            if on_stored is not None:
                on_stored(question)
            return question
        finally:
            self.running -= 1


class SlowIndex(InMemoryVectorStore):
    """Vector index whose ``gated_call``-th upsert blocks until the gate opens."""

    def __init__(self, gated_call: int) -> None:
        super().__init__()
        self.gated_call = gated_call
        self.gate = asyncio.Event()
        self.upserts = 0

    async def upsert(self, point_id: int, vector: list[float], payload: dict[str, Any]) -> None:
        self.upserts += 1
        if self.upserts == self.gated_call:
            await self.gate.wait()
        await super().upsert(point_id, vector, payload)


async def wait_for_calls(worker: GatedWorker, calls: int) -> None:
    while worker.calls < calls:
        await asyncio.sleep(0)


async def with_buffer(store: InMemoryQuestionStore, size: int, auto_refill: bool = True) -> None:
    await store.save_settings(GenerationSettings(buffer_size=size, auto_refill_enabled=auto_refill))


class TestEnsureFilled:
    """Tests for ensure_filled and the drain loop."""

    @pytest.mark.asyncio
    async def test_converges_to_target(self, store: InMemoryQuestionStore) -> None:
        """An empty pool with target 5 ends with 5 pending questions."""
        await with_buffer(store, 5)
        maintainer = BufferMaintainer(store, make_worker(FakeLLM(), store))

        queued = await maintainer.ensure_filled()
        await maintainer.wait_idle()

        status = await maintainer.get_status()
        assert queued == 5
        assert status.current_size == 5
        assert status.missing == 0
        assert status.queued_jobs == 0
        assert not status.is_generating
        assert status.last_run.last_error is None
        assert status.last_run.last_finished_at is not None

    @pytest.mark.asyncio
    async def test_returns_immediately(self, store: InMemoryQuestionStore) -> None:
        """ensure_filled does not wait for generation."""
        await with_buffer(store, 2)
        worker = GatedWorker(store)
        maintainer = BufferMaintainer(store, worker)  # type: ignore[arg-type]

        queued = await maintainer.ensure_filled()

        assert queued == 2
        assert await store.count_by_status(QuestionStatus.TO_REVIEW) == 0
        worker.gate.set()
        await maintainer.wait_idle()
        assert await store.count_by_status(QuestionStatus.TO_REVIEW) == 2

    @pytest.mark.asyncio
    async def test_full_pool_enqueues_nothing(self, store: InMemoryQuestionStore) -> None:
        """A full pool queues no jobs."""
        await with_buffer(store, 1)
        await store.create_question(make_question())
        maintainer = BufferMaintainer(store, GatedWorker(store))  # type: ignore[arg-type]

        assert await maintainer.ensure_filled() == 0
        assert not maintainer.is_generating

    @pytest.mark.asyncio
    async def test_auto_refill_disabled(self, store: InMemoryQuestionStore) -> None:
        """With auto-refill off nothing is queued."""
        await with_buffer(store, 5, auto_refill=False)
        maintainer = BufferMaintainer(store, GatedWorker(store))  # type: ignore[arg-type]

        assert await maintainer.ensure_filled() == 0
        assert maintainer.queued_jobs == 0

    @pytest.mark.asyncio
    async def test_single_flight(self, store: InMemoryQuestionStore) -> None:
        """Repeated triggers never over-enqueue or run jobs concurrently."""
        await with_buffer(store, 3)
        worker = GatedWorker(store)
        maintainer = BufferMaintainer(store, worker)  # type: ignore[arg-type]

        assert await maintainer.ensure_filled() == 3
        await wait_for_calls(worker, 1)
        assert await maintainer.ensure_filled() == 0
        assert await maintainer.force_fill() == 0
        assert maintainer.is_generating
        assert maintainer.queued_jobs == 2

        worker.gate.set()
        await maintainer.wait_idle()

        assert worker.calls == 3
        assert worker.max_running == 1
        assert await store.count_by_status(QuestionStatus.TO_REVIEW) == 3

    @pytest.mark.asyncio
    async def test_committed_job_not_counted_as_pending(self, store: InMemoryQuestionStore) -> None:
        """A review decision made while the last job indexes its vector still tops the pool up."""
        await with_buffer(store, 2)
        index = SlowIndex(gated_call=2)
        maintainer = BufferMaintainer(store, make_worker(FakeLLM(), store, index))

        assert await maintainer.ensure_filled() == 2
        while index.upserts < 2:
            await asyncio.sleep(0)
        assert await store.count_by_status(QuestionStatus.TO_REVIEW) == 2

        first = (await store.list_questions(QuestionStatus.TO_REVIEW))[-1]
        await ReviewService(store, maintainer).accept(first.id or 0)
        assert maintainer.queued_jobs == 1

        index.gate.set()
        await maintainer.wait_idle()

        assert await store.count_by_status(QuestionStatus.TO_REVIEW) == 2
        assert await store.count_by_status(QuestionStatus.ACCEPTED) == 1

    @pytest.mark.asyncio
    async def test_early_queue_clear(self, store: InMemoryQuestionStore) -> None:
        """Queued jobs are discarded once the pool fills from elsewhere."""
        await with_buffer(store, 5)
        worker = GatedWorker(store)
        maintainer = BufferMaintainer(store, worker)  # type: ignore[arg-type]

        await maintainer.ensure_filled()
        await wait_for_calls(worker, 1)
        for i in range(4):
            await store.create_question(make_question(f"Imported statement number {i} about DNS."))
        worker.gate.set()
        await maintainer.wait_idle()

        assert worker.calls == 1
        assert maintainer.discarded_jobs == 4
        assert maintainer.queued_jobs == 0
        assert await store.count_by_status(QuestionStatus.TO_REVIEW) == 5

    @pytest.mark.asyncio
    async def test_job_failure_recorded_and_loop_continues(self, store: InMemoryQuestionStore) -> None:
        """A failed job is recorded as last_error and the next job still runs."""
        await with_buffer(store, 2)
        worker = MagicMock()
        worker.generate_one = AsyncMock(side_effect=GenerationFailed("model offline"))
        maintainer = BufferMaintainer(store, worker)

        await maintainer.ensure_filled()
        await maintainer.wait_idle()

        assert worker.generate_one.await_count == 2
        assert maintainer.last_run.last_error == "model offline"
        assert maintainer.last_run.last_finished_at is not None
        assert not maintainer.last_run.in_flight

    @pytest.mark.asyncio
    async def test_success_clears_last_error(self, store: InMemoryQuestionStore) -> None:
        """A successful job clears the previous error."""
        await with_buffer(store, 1)
        worker = MagicMock()
        stored = await store.create_question(make_question(status=QuestionStatus.ACCEPTED))
        worker.generate_one = AsyncMock(side_effect=[GenerationFailed("first"), stored])
        maintainer = BufferMaintainer(store, worker)

        await maintainer.ensure_filled()
        await maintainer.wait_idle()
        assert maintainer.last_run.last_error == "first"

        await maintainer.ensure_filled()
        await maintainer.wait_idle()
        assert maintainer.last_run.last_error is None

    @pytest.mark.asyncio
    async def test_never_raises_on_store_failure(self, store: InMemoryQuestionStore) -> None:
        """Store errors are recorded, not raised."""
        store.get_settings = AsyncMock(side_effect=RuntimeError("db locked"))  # type: ignore[method-assign]
        maintainer = BufferMaintainer(store, GatedWorker(store))  # type: ignore[arg-type]

        assert await maintainer.ensure_filled() == 0
        assert await maintainer.force_fill() == 0
        status = await maintainer.get_status()

        assert status.current_size == 0
        assert status.status_error is not None
        assert "db locked" in status.status_error
        assert status.last_run.last_error is not None
        assert "db locked" in status.last_run.last_error

    @pytest.mark.asyncio
    async def test_status_failure_keeps_job_error(self, store: InMemoryQuestionStore) -> None:
        """A failing status read is reported apart from the last job's error."""
        await with_buffer(store, 1)
        worker = MagicMock()
        worker.generate_one = AsyncMock(side_effect=GenerationFailed("model offline"))
        maintainer = BufferMaintainer(store, worker)
        await maintainer.ensure_filled()
        await maintainer.wait_idle()

        store.count_by_status = AsyncMock(side_effect=RuntimeError("db locked"))  # type: ignore[method-assign]
        status = await maintainer.get_status()

        assert status.last_run.last_error == "model offline"
        assert status.status_error == "Status unavailable: db locked"
        assert maintainer.last_run.last_error == "model offline"


class TestAdminControls:
    """Tests for settings updates, queue clearing and shutdown."""

    @pytest.mark.asyncio
    async def test_update_settings_triggers_fill(self, store: InMemoryQuestionStore) -> None:
        """Raising the target with refill on queues the shortfall."""
        await with_buffer(store, 0)
        worker = GatedWorker(store)
        maintainer = BufferMaintainer(store, worker)  # type: ignore[arg-type]

        saved = await maintainer.update_settings(buffer_size=2)

        assert saved.buffer_size == 2
        assert maintainer.queued_jobs + worker.calls == 2
        worker.gate.set()
        await maintainer.wait_idle()
        assert await store.count_by_status(QuestionStatus.TO_REVIEW) == 2

    @pytest.mark.asyncio
    async def test_update_settings_rejects_negative(self, store: InMemoryQuestionStore) -> None:
        """A negative target is a configuration error."""
        maintainer = BufferMaintainer(store, GatedWorker(store))  # type: ignore[arg-type]

        with pytest.raises(ConfigurationError):
            await maintainer.update_settings(buffer_size=-1)

    @pytest.mark.asyncio
    async def test_clear_queue(self, store: InMemoryQuestionStore) -> None:
        """Clearing drops pending jobs but not the running one."""
        await with_buffer(store, 3)
        worker = GatedWorker(store)
        maintainer = BufferMaintainer(store, worker)  # type: ignore[arg-type]

        await maintainer.ensure_filled()
        await wait_for_calls(worker, 1)
        dropped = maintainer.clear_queue()
        worker.gate.set()
        await maintainer.wait_idle()

        assert dropped == 2
        assert maintainer.discarded_jobs == 2
        assert worker.calls == 1

    @pytest.mark.asyncio
    async def test_aclose_cancels_drain(self, store: InMemoryQuestionStore) -> None:
        """Shutdown cancels the running job and drops the queue."""
        await with_buffer(store, 3)
        worker = GatedWorker(store)
        maintainer = BufferMaintainer(store, worker)  # type: ignore[arg-type]

        await maintainer.ensure_filled()
        await wait_for_calls(worker, 1)
        await maintainer.aclose()

        assert not maintainer.is_generating
        assert maintainer.queued_jobs == 0
        assert await store.count_by_status(QuestionStatus.TO_REVIEW) == 0
