"""Pipeline wiring for cyberquiz.

Builds every component of the question pipeline from process Settings
and manages their lifecycles as one async context manager.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING

from cyberquiz.adapters.context import InMemoryContextSource
from cyberquiz.adapters.llm import OllamaLLM, OpenAILLM
from cyberquiz.adapters.vectorstore import InMemoryVectorStore, QdrantVectorStore
from cyberquiz.admin import DuplicateStatsService, ReviewService, SettingsService
from cyberquiz.buffer import BufferMaintainer
from cyberquiz.core.config import Settings
from cyberquiz.generation import DuplicateDetector, GenerationWorker, SlotSampler
from cyberquiz.storage import InMemoryQuestionStore, SQLQuestionStore

if TYPE_CHECKING:
    from types import TracebackType

    from cyberquiz.core.protocols import ContextSourceProtocol, LLMProtocol, VectorStoreProtocol
    from cyberquiz.generation.worker import QuestionCallback
    from cyberquiz.storage.base import QuestionStoreProtocol

logger = logging.getLogger(__name__)

MEMORY_URL = "memory"


def build_llm(settings: Settings) -> LLMProtocol:
    """Create the content generator selected by ``settings.llm_provider``."""
    if settings.llm_provider == "openai":
        return OpenAILLM(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            embed_model=settings.openai_embed_model,
            timeout=settings.timeout_seconds,
        )
    return OllamaLLM(
        base_url=settings.ollama_base_url,
        model=settings.ollama_model,
        embed_model=settings.ollama_embed_model,
        timeout=settings.timeout_seconds,
    )


def build_vector_store(settings: Settings) -> VectorStoreProtocol:
    """Create the vector index selected by ``settings.vector_store``."""
    if settings.vector_store == MEMORY_URL:
        return InMemoryVectorStore()
    return QdrantVectorStore(
        url=settings.qdrant_url,
        api_key=settings.qdrant_api_key,
        collection_name=settings.qdrant_collection,
        vector_size=settings.vector_size,
        timeout=settings.timeout_seconds,
    )


def build_store(settings: Settings) -> QuestionStoreProtocol:
    """Create the question store; ``database_url="memory"`` keeps everything in process."""
    if settings.database_url == MEMORY_URL:
        return InMemoryQuestionStore()
    return SQLQuestionStore(settings.database_url)


class Pipeline:
    """The assembled question pipeline.

    Components can be injected for tests; anything not given is built
    from ``settings``.

    Example:
        >>> async with Pipeline(Settings()) as pipeline:
        ...     await pipeline.maintainer.force_fill()
        ...     await pipeline.maintainer.wait_idle()
        ...     status = await pipeline.maintainer.get_status()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store: QuestionStoreProtocol | None = None,
        llm: LLMProtocol | None = None,
        vector_store: VectorStoreProtocol | None = None,
        context_source: ContextSourceProtocol | None = None,
        on_question_added: QuestionCallback | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.store = store if store is not None else build_store(self.settings)
        self.llm = llm if llm is not None else build_llm(self.settings)
        self.vector_store = vector_store if vector_store is not None else build_vector_store(self.settings)
        self.context_source = context_source if context_source is not None else InMemoryContextSource()

        self.detector = DuplicateDetector(
            self.store,
            self.vector_store,
            duplicate_threshold=self.settings.duplicate_threshold,
            display_threshold=self.settings.display_threshold,
        )
        self.sampler = SlotSampler(
            self.store,
            history_window_hours=self.settings.slot_history_window_hours,
            history_limit=self.settings.slot_history_limit,
        )
        self.worker = GenerationWorker(
            self.store,
            self.llm,
            self.detector,
            self.sampler,
            context_source=self.context_source,
            max_retries=self.settings.max_retries,
            timeout=self.settings.timeout_seconds,
            context_max_items=self.settings.context_max_items,
            on_question_added=on_question_added,
        )
        self.maintainer = BufferMaintainer(self.store, self.worker)

        self.review = ReviewService(self.store, self.maintainer)
        self.generation_settings = SettingsService(self.store, self.maintainer)
        self.duplicate_stats = DuplicateStatsService(self.store)

        self._stack: AsyncExitStack | None = None

    async def __aenter__(self) -> Pipeline:
        stack = AsyncExitStack()
        await stack.__aenter__()
        try:
            if hasattr(self.store, "__aenter__"):
                await stack.enter_async_context(self.store)  # type: ignore[arg-type]
            if hasattr(self.llm, "__aenter__"):
                await stack.enter_async_context(self.llm)  # type: ignore[arg-type]
            # the vector index connects lazily, only close it on exit
            if hasattr(self.vector_store, "__aexit__"):
                stack.push_async_exit(self.vector_store)  # type: ignore[arg-type]
            stack.push_async_callback(self.maintainer.aclose)
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        logger.debug(
            f"Pipeline ready: llm={self.settings.llm_provider} "
            f"vector_store={self.settings.vector_store} store={type(self.store).__name__}"
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._stack is not None:
            stack, self._stack = self._stack, None
            await stack.__aexit__(exc_type, exc_val, exc_tb)
