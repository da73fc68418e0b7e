"""External context sources for cyberquiz."""

from __future__ import annotations

from cyberquiz.adapters.context.memory import InMemoryContextSource

__all__ = ["InMemoryContextSource"]
