"""Entropy-controlled slot sampling.

Before each generation attempt a slot (domain, skill type, difficulty,
granularity) is drawn from the enabled space, avoiding combinations used
in the recent history window. This keeps the question pool diverse
without asking the model to "be original".
"""

from __future__ import annotations

import logging
import random
from datetime import timedelta
from typing import TYPE_CHECKING

from cyberquiz.core.types import GenerationSlot, utcnow

if TYPE_CHECKING:
    from cyberquiz.core.types import GenerationSettings
    from cyberquiz.storage.base import QuestionStoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_WINDOW_HOURS = 24.0
DEFAULT_HISTORY_LIMIT = 100

FALLBACK_SLOT = GenerationSlot(
    domain="General",
    skill_type="General",
    difficulty="Intermediate",
    granularity="Technical",
)


class SlotSampler:
    """Draws generation slots from the enabled space.

    Attributes:
        store: Question store holding settings and slot history.
        history_window: Trailing window in which used slots are avoided.
        history_limit: Maximum number of recent slots considered.

    Example:
        >>> sampler = SlotSampler(store, rng=random.Random(7))
        >>> slot = await sampler.select_slot()
        >>> slot.signature
        'Cryptography|Analysis|Expert|Technical'
    """

    def __init__(
        self,
        store: QuestionStoreProtocol,
        *,
        history_window_hours: float = DEFAULT_HISTORY_WINDOW_HOURS,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the sampler.

        Args:
            store: Question store holding settings and slot history.
            history_window_hours: Trailing window in hours. Defaults to 24.
            history_limit: Maximum recent entries considered. Defaults to 100.
            rng: Random source, injectable for reproducible tests.
        """
        self.store = store
        self.history_window = timedelta(hours=history_window_hours)
        self.history_limit = history_limit
        self._rng = rng or random.Random()

    async def select_slot(self, settings: GenerationSettings | None = None) -> GenerationSlot:
        """Pick the constraints for the next generation attempt.

        With structured generation disabled, returns FALLBACK_SLOT and
        writes no history. Otherwise draws uniformly from the combinations
        not used within the history window (or from all combinations once
        every one has been used), records the draw immediately and purges
        history older than twice the window.

        Args:
            settings: Settings snapshot to use; read from the store if omitted.

        Returns:
            The selected slot.

        Raises:
            ConfigurationError: If a dimension of the enabled space is empty.
        """
        if settings is None:
            settings = await self.store.get_settings()
        if not settings.structured_space_enabled:
            return FALLBACK_SLOT

        space = settings.slot_space
        space.validate_non_empty()

        now = utcnow()
        recent = await self.store.recent_slots(now - self.history_window, self.history_limit)
        recent_signatures = {slot.signature for slot in recent}

        combinations = space.combinations()
        available = [slot for slot in combinations if slot.signature not in recent_signatures]
        if not available:
            logger.info(f"All {len(combinations)} slots used within the window, resetting the cycle")
            available = combinations

        slot = self._rng.choice(available)
        await self.store.record_slot(slot, now)
        purged = await self.store.purge_slot_history(now - 2 * self.history_window)
        if purged:
            logger.debug(f"Purged {purged} expired slot history rows")

        logger.debug(f"Selected slot {slot.signature} ({len(available)}/{len(combinations)} available)")
        return slot

    async def link_question(self, slot: GenerationSlot, question_id: int) -> bool:
        """Attach a generated question to the history row of its slot."""
        linked = await self.store.link_slot(slot, question_id)
        if not linked:
            logger.warning(f"No unlinked history row for slot {slot.signature} (question {question_id})")
        return linked
