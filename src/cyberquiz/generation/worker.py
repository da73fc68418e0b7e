"""Generation worker: produce one non-duplicate question.

This module runs a single generation job: sample a slot, prompt the
content generator, embed and check the candidate for duplicates, then
persist the question and its embedding. Duplicates and transient
generator failures consume an attempt; the job gives up after
``max_retries`` attempts.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from cyberquiz.core.exceptions import (
    CyberQuizError,
    DuplicateExhausted,
    GenerationFailed,
    LLMConnectionError,
    PersistenceError,
    TransientGenerationError,
    VectorStoreConnectionError,
)
from cyberquiz.core.hashing import short_hash
from cyberquiz.core.types import ContextBundle, GenerationSlot, Question, QuestionStatus
from cyberquiz.generation.duplicates import DuplicateVerdict
from cyberquiz.generation.parsing import parse_candidate
from cyberquiz.generation.prompts import build_generation_prompt, score_for_difficulty

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from cyberquiz.core.protocols import ContextSourceProtocol, LLMProtocol
    from cyberquiz.core.types import GenerationSettings
    from cyberquiz.generation.duplicates import DuplicateDetector
    from cyberquiz.generation.slots import SlotSampler
    from cyberquiz.storage.base import QuestionStoreProtocol

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = 3
DEFAULT_TIMEOUT = 120.0
DEFAULT_CONTEXT_ITEMS = 5

# Failures that consume an attempt instead of failing the job
RETRYABLE_ERRORS = (TransientGenerationError, LLMConnectionError, VectorStoreConnectionError)

QuestionCallback = Callable[[Question], Any]


class GenerationWorker:
    """Generates and stores one question per call.

    Attributes:
        store: Question store.
        llm: Content generator.
        detector: Duplicate detector; its vector store receives the new embedding.
        sampler: Slot sampler.
        context_source: Optional external context source.
        max_retries: Attempts per job.
        timeout: Timeout in seconds applied to every external call.

    Example:
        >>> worker = GenerationWorker(store, llm, detector, sampler)
        >>> question = await worker.generate_one()
        >>> question.status
        <QuestionStatus.TO_REVIEW: 'to_review'>
    """

    def __init__(
        self,
        store: QuestionStoreProtocol,
        llm: LLMProtocol,
        detector: DuplicateDetector,
        sampler: SlotSampler,
        *,
        context_source: ContextSourceProtocol | None = None,
        max_retries: int = MAX_RETRIES,
        timeout: float = DEFAULT_TIMEOUT,
        context_max_items: int = DEFAULT_CONTEXT_ITEMS,
        on_question_added: QuestionCallback | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            store: Question store.
            llm: Content generator.
            detector: Duplicate detector.
            sampler: Slot sampler.
            context_source: External context source, used when settings enable it.
            max_retries: Attempts per job. Defaults to 3.
            timeout: Seconds allowed for each external call. Defaults to 120.
            context_max_items: Maximum context items per prompt. Defaults to 5.
            on_question_added: Called with each stored question; may be async.
        """
        if max_retries < 1:
            msg = "max_retries must be at least 1"
            raise ValueError(msg)
        self.store = store
        self.llm = llm
        self.detector = detector
        self.sampler = sampler
        self.context_source = context_source
        self.max_retries = max_retries
        self.timeout = timeout
        self.context_max_items = context_max_items
        self.on_question_added = on_question_added

    async def _timed(self, awaitable: Awaitable[T], what: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            msg = f"{what} timed out after {self.timeout}s"
            raise TransientGenerationError(msg) from e

    async def generate_one(self, *, on_stored: Callable[[Question], None] | None = None) -> Question:
        """Run one generation job.

        Args:
            on_stored: Called synchronously as soon as the question row is
                committed, before indexing and the other follow-up steps.

        Returns:
            The stored question, in ``to_review`` status.

        Raises:
            ConfigurationError: If structured generation has an empty dimension
                or the embedding size does not fit the vector index.
            DuplicateExhausted: If the last attempt produced a duplicate.
            PersistenceError: If the question row could not be written.
            GenerationFailed: If the last attempt failed transiently, or an
                attempt failed with an unexpected error.
        """
        settings = await self._timed(self.store.get_settings(), "Reading generation settings")
        bundle = await self._fetch_context(settings)

        last_error: Exception | None = None
        last_verdict: DuplicateVerdict | None = None

        for attempt in range(self.max_retries):
            try:
                slot = await self._timed(self.sampler.select_slot(settings), "Slot selection")
                logger.info(
                    f"Generating question (attempt {attempt + 1}/{self.max_retries}, slot {slot.signature})"
                )
                outcome = await self._attempt(settings, slot, bundle, attempt, on_stored)
            except RETRYABLE_ERRORS as e:
                logger.warning(f"Generation attempt {attempt + 1}/{self.max_retries} failed: {e}")
                last_error, last_verdict = e, None
                continue
            except CyberQuizError:
                raise
            except Exception as e:
                msg = f"Generation attempt {attempt + 1}/{self.max_retries} failed unexpectedly: {e}"
                raise GenerationFailed(msg) from e

            if isinstance(outcome, DuplicateVerdict):
                last_error, last_verdict = None, outcome
                continue

            return await self._finish(outcome, slot, settings, bundle)

        if last_verdict is not None:
            raise DuplicateExhausted(self.max_retries, last_verdict.similarity)
        msg = f"Generation failed after {self.max_retries} attempts: {last_error}"
        raise GenerationFailed(msg) from last_error

    async def _fetch_context(self, settings: GenerationSettings) -> ContextBundle:
        if not settings.use_context or self.context_source is None or self.context_max_items <= 0:
            return ContextBundle()
        try:
            bundle = await self._timed(
                self.context_source.get_context(self.context_max_items),
                "Fetching generation context",
            )
        except Exception as e:
            logger.warning(f"Context unavailable, generating without it: {e}")
            return ContextBundle()
        if bundle:
            logger.debug(f"Using {len(bundle.items)} context items from sources {bundle.source_ids}")
        return bundle

    async def _attempt(
        self,
        settings: GenerationSettings,
        slot: GenerationSlot,
        bundle: ContextBundle,
        attempt: int,
        on_stored: Callable[[Question], None] | None = None,
    ) -> Question | DuplicateVerdict:
        structured = settings.structured_space_enabled
        topic = slot.domain if structured else settings.default_topic

        prompt = build_generation_prompt(
            slot=slot if structured else None,
            topic=topic,
            context=bundle.text,
            attempt=attempt,
            max_attempts=self.max_retries,
        )
        raw = await self._timed(self.llm.generate(prompt), "Question generation")
        candidate = parse_candidate(raw)

        embedding = await self._timed(self.llm.embed(candidate.question_text), "Embedding")
        if not embedding:
            msg = "Content generator returned an empty embedding"
            raise TransientGenerationError(msg)

        verdict = await self._timed(
            self.detector.check(candidate.question_text, embedding, topic=topic),
            "Duplicate check",
        )
        if verdict.is_duplicate:
            logger.warning(
                f"Duplicate detected by {verdict.method.value if verdict.method else 'unknown'} "
                f"(attempt {attempt + 1}/{self.max_retries})"
            )
            return verdict

        try:
            similar = await self._timed(self.detector.find_similar(embedding), "Similar-question search")
        except RETRYABLE_ERRORS as e:
            logger.warning(f"Advisory similarity search failed, storing without it: {e}")
            similar = []

        tags = list(dict.fromkeys([*candidate.tags, *bundle.source_tags]))
        question = Question(
            question_text=candidate.question_text,
            options=candidate.options,
            correct_answer=candidate.correct_answer,
            explanation=candidate.explanation,
            difficulty=score_for_difficulty(slot.difficulty) if structured else candidate.estimated_difficulty,
            status=QuestionStatus.TO_REVIEW,
            category=topic,
            generation_domain=slot.domain if structured else None,
            generation_skill_type=slot.skill_type if structured else None,
            generation_difficulty=slot.difficulty if structured else None,
            generation_granularity=slot.granularity if structured else None,
            tags=tags,
            mitre_techniques=candidate.mitre_techniques,
            potential_duplicates=similar,
            ai_provider=getattr(self.llm, "name", None),
            context_article_ids=bundle.item_ids,
            context_source_ids=bundle.source_ids,
        )

        try:
            stored = await self._timed(self.store.create_question(question), "Storing question")
        except Exception as e:
            msg = f"Failed to store question {short_hash(question.question_hash)}: {e}"
            raise PersistenceError(msg) from e
        if stored.id is None:
            msg = f"Store returned question {short_hash(question.question_hash)} without an id"
            raise PersistenceError(msg)
        if on_stored is not None:
            on_stored(stored)

        try:
            await self._timed(
                self.detector.vector_store.upsert(stored.id, embedding, stored.embedding_payload()),
                "Embedding upsert",
            )
        except Exception as e:
            # the row stays; it is simply invisible to semantic duplicate checks
            logger.error(f"Failed to index question {stored.id}, keeping it without a vector: {e}")

        return stored

    async def _finish(
        self,
        question: Question,
        slot: GenerationSlot,
        settings: GenerationSettings,
        bundle: ContextBundle,
    ) -> Question:
        if settings.structured_space_enabled and question.id is not None:
            try:
                await self._timed(self.sampler.link_question(slot, question.id), "Slot linking")
            except Exception as e:
                logger.warning(f"Could not link question {question.id} to slot {slot.signature}: {e}")

        if bundle and self.context_source is not None:
            try:
                await self._timed(self.context_source.mark_used(bundle.item_ids), "Marking context used")
            except Exception as e:
                logger.warning(f"Could not mark context items {bundle.item_ids} as used: {e}")

        logger.info(f"Question {question.id} generated ({question.category}, {slot.signature})")

        if self.on_question_added is not None:
            try:
                result = self.on_question_added(question)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"on_question_added callback failed for question {question.id}: {e}")

        return question
