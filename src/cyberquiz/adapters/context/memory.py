"""In-memory external context source.

Stands in for the news-feed subsystem: holds feed items and hands out the
most recent unused ones to ground generation prompts.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from cyberquiz.core.types import ContextBundle, ContextItem

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class InMemoryContextSource:
    """Context source backed by a list of items.

    Implements ContextSourceProtocol. Items are offered newest first and
    withdrawn once marked used.

    Example:
        >>> source = InMemoryContextSource([item1, item2])
        >>> bundle = await source.get_context(max_items=1)
        >>> await source.mark_used(bundle.item_ids)
    """

    def __init__(self, items: Iterable[ContextItem] = ()) -> None:
        self._items: dict[int, ContextItem] = {item.id: item for item in items}
        self._used: set[int] = set()

    def add(self, item: ContextItem) -> None:
        """Add or replace an item."""
        self._items[item.id] = item

    async def get_context(self, max_items: int = 5) -> ContextBundle:
        unused = [item for item in self._items.values() if item.id not in self._used]
        unused.sort(key=lambda item: item.published_at or _EPOCH, reverse=True)
        return ContextBundle(items=unused[: max(max_items, 0)])

    async def mark_used(self, item_ids: list[int]) -> None:
        if not item_ids:
            return
        self._used.update(item_ids)
        logger.debug(f"Marked {len(item_ids)} context items as used")

    @property
    def unused_count(self) -> int:
        return len(self._items) - len(self._used & self._items.keys())
