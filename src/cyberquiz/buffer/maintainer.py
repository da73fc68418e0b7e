"""Buffer maintenance: keep the review pool at its target size.

The maintainer compares the number of ``to_review`` questions with the
target buffer size, queues one job per missing question, and drains the
queue in a single background task. Callers never wait for generation.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from cyberquiz.core.exceptions import ConfigurationError
from cyberquiz.core.types import BufferStatus, GenerationRun, GenerationSettings, QuestionStatus, utcnow

if TYPE_CHECKING:
    from cyberquiz.core.types import Question
    from cyberquiz.generation.worker import GenerationWorker
    from cyberquiz.storage.base import QuestionStoreProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationJob:
    """A pending request to generate one question."""

    id: int
    enqueued_at: datetime = field(default_factory=utcnow)


class BufferMaintainer:
    """Single-flight background filler for the question pool.

    All state (the pending-job queue, the drain task, the last-run record)
    belongs to the instance. At most one drain task runs at a time, and it
    runs jobs strictly one after another.

    Attributes:
        store: Question store.
        worker: Generation worker running each job.
        discarded_jobs: Jobs dropped without running, because the pool
            filled up first or the queue was cleared.

    Example:
        >>> maintainer = BufferMaintainer(store, worker)
        >>> queued = await maintainer.ensure_filled()
        >>> status = await maintainer.get_status()
        >>> status.is_generating
        True
    """

    def __init__(self, store: QuestionStoreProtocol, worker: GenerationWorker) -> None:
        self.store = store
        self.worker = worker
        self.discarded_jobs = 0
        self._queue: deque[GenerationJob] = deque()
        self._drain_task: asyncio.Task[None] | None = None
        self._job_running = False
        self._job_stored = False
        self._last_run = GenerationRun()
        self._job_ids = itertools.count(1)

    @property
    def is_generating(self) -> bool:
        """Whether the drain task is running."""
        return self._drain_task is not None and not self._drain_task.done()

    @property
    def queued_jobs(self) -> int:
        return len(self._queue)

    @property
    def last_run(self) -> GenerationRun:
        return self._last_run.model_copy()

    async def get_status(self) -> BufferStatus:
        """Snapshot of pool size, target and background activity.

        Never raises: when the store is unavailable the failure is reported
        in ``status_error`` and sizes are reported as 0. ``last_run`` keeps
        the outcome of the last generation job.
        """
        try:
            settings = await self.store.get_settings()
            current = await self.store.count_by_status(QuestionStatus.TO_REVIEW)
        except Exception as e:
            logger.error(f"Buffer status unavailable: {e}")
            return BufferStatus(
                current_size=0,
                target_size=0,
                queued_jobs=len(self._queue),
                is_generating=self.is_generating,
                auto_refill_enabled=False,
                missing=0,
                discarded_jobs=self.discarded_jobs,
                last_run=self.last_run,
                status_error=f"Status unavailable: {e}",
            )

        return BufferStatus(
            current_size=current,
            target_size=settings.buffer_size,
            queued_jobs=len(self._queue),
            is_generating=self.is_generating,
            auto_refill_enabled=settings.auto_refill_enabled,
            missing=max(0, settings.buffer_size - current),
            discarded_jobs=self.discarded_jobs,
            last_run=self.last_run,
        )

    async def ensure_filled(self) -> int:
        """Queue jobs for the current shortfall and start draining.

        Jobs already queued or running count against the shortfall, so
        repeated calls never over-enqueue. Returns immediately.

        Returns:
            Number of jobs enqueued by this call.
        """
        try:
            settings = await self.store.get_settings()
            if not settings.auto_refill_enabled:
                logger.info("Auto-refill disabled, skipping")
                return 0
            current = await self.store.count_by_status(QuestionStatus.TO_REVIEW)
        except Exception as e:
            logger.error(f"Cannot check buffer level: {e}")
            self._last_run.last_error = f"Buffer check failed: {e}"
            return 0

        missing = max(0, settings.buffer_size - current)
        # a running job whose row is committed is already part of current
        pending = len(self._queue) + (1 if self._job_running and not self._job_stored else 0)
        to_enqueue = max(0, missing - pending)

        if missing == 0:
            logger.debug(f"Buffer is full ({current}/{settings.buffer_size})")
        elif to_enqueue:
            logger.info(
                f"Refilling buffer: {current}/{settings.buffer_size}, "
                f"queueing {to_enqueue} job(s) ({pending} already pending)"
            )

        for _ in range(to_enqueue):
            self._queue.append(GenerationJob(id=next(self._job_ids)))

        self._start_drain()
        return to_enqueue

    async def force_fill(self) -> int:
        """Manual admin trigger; same contract as ensure_filled()."""
        logger.info("Manual buffer fill triggered")
        return await self.ensure_filled()

    async def update_settings(
        self,
        *,
        buffer_size: int | None = None,
        auto_refill_enabled: bool | None = None,
    ) -> GenerationSettings:
        """Persist buffer settings, then top the pool up if refill is on.

        Raises:
            ConfigurationError: If ``buffer_size`` is negative.
        """
        if buffer_size is not None and buffer_size < 0:
            msg = f"buffer_size must be >= 0, got {buffer_size}"
            raise ConfigurationError(msg)

        settings = await self.store.get_settings()
        updates: dict[str, object] = {}
        if buffer_size is not None:
            updates["buffer_size"] = buffer_size
        if auto_refill_enabled is not None:
            updates["auto_refill_enabled"] = auto_refill_enabled

        saved = await self.store.save_settings(settings.model_copy(update=updates))
        logger.info(f"Buffer settings updated: {updates}")

        if saved.auto_refill_enabled:
            await self.ensure_filled()
        return saved

    def clear_queue(self) -> int:
        """Drop every pending job; a job already running is not affected."""
        dropped = len(self._queue)
        self._queue.clear()
        self.discarded_jobs += dropped
        if dropped:
            logger.info(f"Cleared {dropped} pending generation job(s)")
        return dropped

    async def wait_idle(self) -> None:
        """Wait until no drain task is running."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.wait({self._drain_task})

    async def aclose(self) -> None:
        """Cancel the drain task and drop pending jobs."""
        self._queue.clear()
        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._drain_task = None

    def _start_drain(self) -> None:
        if not self._queue or self.is_generating:
            return
        self._drain_task = asyncio.create_task(self._drain(), name="cyberquiz-buffer-drain")

    async def _drain(self) -> None:
        self._last_run.in_flight = True
        try:
            while self._queue:
                try:
                    settings = await self.store.get_settings()
                    current = await self.store.count_by_status(QuestionStatus.TO_REVIEW)
                except Exception as e:
                    # jobs stay queued; the next ensure_filled() restarts the drain
                    logger.error(f"Cannot read buffer level, pausing generation: {e}")
                    self._last_run.last_error = f"Buffer check failed: {e}"
                    return

                if current >= settings.buffer_size:
                    dropped = len(self._queue)
                    self._queue.clear()
                    self.discarded_jobs += dropped
                    logger.info(f"Buffer reached {current}/{settings.buffer_size}, discarded {dropped} queued job(s)")
                    return

                job = self._queue.popleft()
                await self._run_job(job)
        finally:
            self._last_run.in_flight = False

    async def _run_job(self, job: GenerationJob) -> None:
        self._job_running = True
        self._job_stored = False
        self._last_run.last_started_at = utcnow()
        try:
            question = await self.worker.generate_one(on_stored=self._mark_stored)
        except Exception as e:
            self._last_run.last_error = str(e) or type(e).__name__
            logger.error(f"Generation job {job.id} failed: {self._last_run.last_error}")
        else:
            self._last_run.last_error = None
            logger.info(f"Generation job {job.id} produced question {question.id}")
        finally:
            self._job_running = False
            self._job_stored = False
            self._last_run.last_finished_at = utcnow()

    def _mark_stored(self, question: Question) -> None:
        self._job_stored = True
        logger.debug(f"Question {question.id} committed, no longer counted as pending")
