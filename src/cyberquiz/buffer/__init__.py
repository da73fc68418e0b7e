"""Background buffer maintenance for cyberquiz."""

from __future__ import annotations

from cyberquiz.buffer.maintainer import BufferMaintainer, GenerationJob

__all__ = ["BufferMaintainer", "GenerationJob"]
