"""Admin services for cyberquiz: review decisions, settings and statistics.

These are the functions the admin HTTP handlers call.
"""

from __future__ import annotations

from cyberquiz.admin.review import ResolvedSimilar, ReviewService, ReviewStats, SimilarQuestions
from cyberquiz.admin.settings import SettingsService, SettingsUpdate
from cyberquiz.admin.stats import DuplicateHashCount, DuplicateStats, DuplicateStatsService

__all__ = [
    "DuplicateHashCount",
    "DuplicateStats",
    "DuplicateStatsService",
    "ResolvedSimilar",
    "ReviewService",
    "ReviewStats",
    "SettingsService",
    "SettingsUpdate",
    "SimilarQuestions",
]
