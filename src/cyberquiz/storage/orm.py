"""SQLAlchemy ORM tables backing the SQL question store."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class QuestionRow(Base):
    __tablename__ = "questions"
    __table_args__ = (
        Index("idx_questions_hash", "question_hash"),
        Index("idx_questions_status", "status"),
        Index("idx_questions_created_at", "created_at"),
    )

    # INTEGER PRIMARY KEY so SQLite assigns ids
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    question_text: Mapped[str] = mapped_column(Text)
    question_hash: Mapped[str] = mapped_column(String(64))
    options: Mapped[list[str]] = mapped_column(JSON)
    correct_answer: Mapped[str] = mapped_column(String(255))
    explanation: Mapped[str] = mapped_column(Text, default="")
    difficulty: Mapped[float] = mapped_column(Float, default=0.5)
    status: Mapped[str] = mapped_column(String(20), default="to_review")
    is_rejected: Mapped[bool] = mapped_column(Boolean, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    category: Mapped[str] = mapped_column(String(100))
    question_type: Mapped[str] = mapped_column(String(50), default="true-false")
    generation_domain: Mapped[str | None] = mapped_column(String(100), nullable=True)
    generation_skill_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    generation_difficulty: Mapped[str | None] = mapped_column(String(50), nullable=True)
    generation_granularity: Mapped[str | None] = mapped_column(String(50), nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    mitre_techniques: Mapped[list[str]] = mapped_column(JSON, default=list)
    potential_duplicates: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    ai_provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    context_article_ids: Mapped[list[int]] = mapped_column(JSON, default=list)
    context_source_ids: Mapped[list[int]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class SlotHistoryRow(Base):
    __tablename__ = "generation_slot_history"
    __table_args__ = (Index("idx_slot_history_used_at", "used_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    domain: Mapped[str] = mapped_column(String(100))
    skill_type: Mapped[str] = mapped_column(String(100))
    difficulty: Mapped[str] = mapped_column(String(50))
    granularity: Mapped[str] = mapped_column(String(50))
    question_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("questions.id"), nullable=True)
    used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class DuplicateLogRow(Base):
    __tablename__ = "duplicate_logs"
    __table_args__ = (
        Index("idx_duplicate_logs_created_at", "created_at"),
        Index("idx_duplicate_logs_hash", "question_hash"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    question_hash: Mapped[str] = mapped_column(String(64))
    attempted_text: Mapped[str] = mapped_column(Text)
    detection_method: Mapped[str] = mapped_column(String(20))
    similarity_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    original_question_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    topic: Mapped[str] = mapped_column(String(100), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class GenerationSettingsRow(Base):
    __tablename__ = "generation_settings"

    # single row, id 1
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    buffer_size: Mapped[int] = mapped_column(Integer)
    auto_refill_enabled: Mapped[bool] = mapped_column(Boolean)
    structured_space_enabled: Mapped[bool] = mapped_column(Boolean)
    enabled_domains: Mapped[list[str]] = mapped_column(JSON)
    enabled_skill_types: Mapped[list[str]] = mapped_column(JSON)
    enabled_difficulties: Mapped[list[str]] = mapped_column(JSON)
    enabled_granularities: Mapped[list[str]] = mapped_column(JSON)
    use_context: Mapped[bool] = mapped_column(Boolean)
    default_topic: Mapped[str] = mapped_column(String(100))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
