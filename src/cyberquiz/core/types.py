"""Core type definitions for cyberquiz.

This module defines the data structures shared by the generation
pipeline: questions and their lifecycle, generation slots, slot history,
duplicate log entries, admin-editable generation settings and the
buffer status snapshot.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator
from typing_extensions import Self

from cyberquiz.core.exceptions import ConfigurationError
from cyberquiz.core.hashing import question_hash


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class QuestionStatus(str, Enum):
    """Lifecycle status of a question."""

    TO_REVIEW = "to_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class DetectionMethod(str, Enum):
    """How a duplicate was detected."""

    HASH = "hash"
    EMBEDDING = "embedding"


class GenerationSlot(BaseModel):
    """A combination of attributes constraining one generation attempt.

    Attributes:
        domain: Content domain (e.g. "Network Security").
        skill_type: Skill exercised (e.g. "Detection").
        difficulty: Categorical difficulty (e.g. "Advanced").
        granularity: Level of detail (e.g. "Procedural").

    Example:
        >>> slot = GenerationSlot(
        ...     domain="Cryptography",
        ...     skill_type="Analysis",
        ...     difficulty="Expert",
        ...     granularity="Technical",
        ... )
        >>> slot.signature
        'Cryptography|Analysis|Expert|Technical'
    """

    model_config = {"frozen": True}

    domain: str = Field(..., min_length=1)
    skill_type: str = Field(..., min_length=1)
    difficulty: str = Field(..., min_length=1)
    granularity: str = Field(..., min_length=1)

    @property
    def signature(self) -> str:
        """Key used for recency comparisons; equality is exact 4-tuple match."""
        return f"{self.domain}|{self.skill_type}|{self.difficulty}|{self.granularity}"


class SimilarQuestion(BaseModel):
    """An advisory neighbour attached to a question for human review."""

    model_config = {"frozen": True}

    id: int
    similarity: float


class Question(BaseModel):
    """A candidate or approved quiz item.

    The question hash is derived from the text when omitted, and checked
    against it when given.

    Example:
        >>> q = Question(
        ...     question_text="TLS 1.3 removed support for RSA key exchange.",
        ...     options=["Vrai", "Faux"],
        ...     correct_answer="Vrai",
        ...     explanation="TLS 1.3 only keeps (EC)DHE key exchange.",
        ...     category="Cryptography",
        ... )
        >>> q.status
        <QuestionStatus.TO_REVIEW: 'to_review'>
    """

    id: int | None = None
    question_text: str = Field(..., min_length=1)
    question_hash: str = ""
    options: list[str] = Field(..., min_length=2, max_length=2)
    correct_answer: str
    explanation: str = ""
    difficulty: float = Field(default=0.5, ge=0.0, le=1.0)
    status: QuestionStatus = QuestionStatus.TO_REVIEW
    is_rejected: bool = False
    is_deleted: bool = False
    category: str = "Cybersecurity"
    question_type: str = "true-false"
    generation_domain: str | None = None
    generation_skill_type: str | None = None
    generation_difficulty: str | None = None
    generation_granularity: str | None = None
    tags: list[str] = Field(default_factory=list)
    mitre_techniques: list[str] = Field(default_factory=list)
    potential_duplicates: list[SimilarQuestion] = Field(default_factory=list)
    ai_provider: str | None = None
    context_article_ids: list[int] = Field(default_factory=list)
    context_source_ids: list[int] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        expected_hash = question_hash(self.question_text)
        if not self.question_hash:
            self.question_hash = expected_hash
        elif self.question_hash != expected_hash:
            msg = "question_hash does not match question_text"
            raise ValueError(msg)
        if self.correct_answer not in self.options:
            msg = f"correct_answer {self.correct_answer!r} is not one of the options {self.options!r}"
            raise ValueError(msg)
        if self.is_rejected and self.status != QuestionStatus.REJECTED:
            msg = "a question flagged is_rejected must have status 'rejected'"
            raise ValueError(msg)
        return self

    @property
    def slot(self) -> GenerationSlot | None:
        """The slot this question was generated for, if structured generation was used."""
        if not (
            self.generation_domain
            and self.generation_skill_type
            and self.generation_difficulty
            and self.generation_granularity
        ):
            return None
        return GenerationSlot(
            domain=self.generation_domain,
            skill_type=self.generation_skill_type,
            difficulty=self.generation_difficulty,
            granularity=self.generation_granularity,
        )

    def embedding_payload(self) -> dict[str, Any]:
        """Denormalized fields stored alongside the vector."""
        return {
            "question_id": self.id,
            "question_text": self.question_text,
            "category": self.category,
            "difficulty": float(self.difficulty),
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
        }


class SlotHistoryEntry(BaseModel):
    """A timestamped record of a sampled slot."""

    id: int | None = None
    slot: GenerationSlot
    question_id: int | None = None
    used_at: datetime = Field(default_factory=utcnow)


class DuplicateLogEntry(BaseModel):
    """Immutable audit record of a discarded generation attempt."""

    model_config = {"frozen": True}

    id: int | None = None
    question_hash: str
    attempted_text: str
    detection_method: DetectionMethod
    similarity_score: float | None = None
    original_question_id: int | None = None
    topic: str = ""
    created_at: datetime = Field(default_factory=utcnow)


DEFAULT_DOMAINS = [
    "Network Security",
    "Application Security",
    "Cloud Security",
    "Identity & Access",
    "Threat Intelligence",
    "Incident Response",
    "Cryptography",
    "Compliance & Governance",
]
DEFAULT_SKILL_TYPES = ["Detection", "Prevention", "Analysis", "Configuration", "Best Practices"]
DEFAULT_DIFFICULTIES = ["Beginner", "Intermediate", "Advanced", "Expert"]
DEFAULT_GRANULARITIES = ["Conceptual", "Procedural", "Technical", "Strategic"]


class SlotSpace(BaseModel):
    """The enabled values of the four slot dimensions.

    Emptiness is checked where the space is used, not where it is stored,
    so an admin can save a partial configuration without breaking reads.
    """

    model_config = {"frozen": True}

    domains: list[str] = Field(default_factory=list)
    skill_types: list[str] = Field(default_factory=list)
    difficulties: list[str] = Field(default_factory=list)
    granularities: list[str] = Field(default_factory=list)

    def validate_non_empty(self) -> None:
        """Raise ConfigurationError naming every empty dimension."""
        empty = [
            name
            for name, values in (
                ("domains", self.domains),
                ("skill_types", self.skill_types),
                ("difficulties", self.difficulties),
                ("granularities", self.granularities),
            )
            if not values
        ]
        if empty:
            msg = f"Generation space has no enabled values for: {', '.join(empty)}"
            raise ConfigurationError(msg)

    def combinations(self) -> list[GenerationSlot]:
        """Cartesian product of the four dimensions."""
        return [
            GenerationSlot(domain=d, skill_type=s, difficulty=df, granularity=g)
            for d, s, df, g in itertools.product(
                self.domains, self.skill_types, self.difficulties, self.granularities
            )
        ]

    @property
    def size(self) -> int:
        """Number of distinct slots in the space."""
        return len(self.domains) * len(self.skill_types) * len(self.difficulties) * len(self.granularities)


class GenerationSettings(BaseModel):
    """Admin-editable generation settings, read at the start of each cycle."""

    buffer_size: int = Field(default=10, ge=0)
    auto_refill_enabled: bool = True
    structured_space_enabled: bool = False
    enabled_domains: list[str] = Field(default_factory=lambda: list(DEFAULT_DOMAINS))
    enabled_skill_types: list[str] = Field(default_factory=lambda: list(DEFAULT_SKILL_TYPES))
    enabled_difficulties: list[str] = Field(default_factory=lambda: list(DEFAULT_DIFFICULTIES))
    enabled_granularities: list[str] = Field(default_factory=lambda: list(DEFAULT_GRANULARITIES))
    use_context: bool = False
    default_topic: str = "Cybersecurity"
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def slot_space(self) -> SlotSpace:
        """The enabled dimension sets as a typed space."""
        return SlotSpace(
            domains=self.enabled_domains,
            skill_types=self.enabled_skill_types,
            difficulties=self.enabled_difficulties,
            granularities=self.enabled_granularities,
        )


class ContextItem(BaseModel):
    """An external article used to ground a generation prompt."""

    model_config = {"frozen": True}

    id: int
    title: str
    link: str = ""
    summary: str = ""
    source_id: int
    source_title: str | None = None
    published_at: datetime | None = None

    def render(self) -> str:
        """Format the item as a prompt block."""
        summary = self.summary[:500] if self.summary else "N/A"
        return (
            f"Source: {self.source_title or 'Unknown'}\n"
            f"Title: {self.title}\n"
            f"Link: {self.link}\n"
            f"Summary: {summary}"
        )


class ContextBundle(BaseModel):
    """A small set of context items consumed by one generation run."""

    model_config = {"frozen": True}

    items: list[ContextItem] = Field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.items)

    @property
    def text(self) -> str:
        """All items rendered for the prompt, separated by rules."""
        return "\n\n---\n\n".join(item.render() for item in self.items)

    @property
    def item_ids(self) -> list[int]:
        return [item.id for item in self.items]

    @property
    def source_ids(self) -> list[int]:
        """Distinct source ids in first-seen order."""
        return list(dict.fromkeys(item.source_id for item in self.items))

    @property
    def source_tags(self) -> list[str]:
        """Tags naming the sources that grounded the question."""
        titles = dict.fromkeys(item.source_title for item in self.items if item.source_title)
        return [f"source:{title}" for title in titles]


class VectorMatch(BaseModel):
    """A nearest-neighbour hit returned by the vector index."""

    model_config = {"frozen": True}

    id: int
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)


class GenerationRun(BaseModel):
    """Timestamps and last error of the background drain loop."""

    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_error: str | None = None
    in_flight: bool = False


class BufferStatus(BaseModel):
    """Snapshot of the question pool, exposed to the admin dashboard.

    Example:
        >>> status = await maintainer.get_status()
        >>> print(f"{status.current_size}/{status.target_size}, missing {status.missing}")
    """

    current_size: int
    target_size: int
    queued_jobs: int
    is_generating: bool
    auto_refill_enabled: bool
    missing: int
    discarded_jobs: int = 0
    last_run: GenerationRun = Field(default_factory=GenerationRun)
    status_error: str | None = None
