"""Data models for question generation.

This module contains the Pydantic model for a question candidate as
returned by the content generator, before duplicate checks and storage.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from typing_extensions import Self

DEFAULT_OPTIONS = ["Vrai", "Faux"]


class GeneratedCandidate(BaseModel):
    """A question candidate parsed from model output.

    Field aliases follow the JSON keys the generation prompt asks for
    (``questionText``, ``correctAnswer``...); snake_case names are
    accepted as well.

    Attributes:
        question_text: The statement to judge true or false.
        options: The two answer options.
        correct_answer: One of the options.
        explanation: Why the answer is correct.
        mitre_techniques: MITRE ATT&CK technique ids, if any.
        tags: Free-form tags.
        estimated_difficulty: Model's own difficulty estimate in [0, 1].
    """

    model_config = {"populate_by_name": True}

    question_text: str = Field(..., alias="questionText", min_length=10, description="Question statement")
    options: list[str] = Field(default_factory=lambda: list(DEFAULT_OPTIONS), alias="options")
    correct_answer: str = Field(default="Vrai", alias="correctAnswer")
    explanation: str = Field(default="", alias="explanation")
    mitre_techniques: list[str] = Field(default_factory=list, alias="mitreTechniques")
    tags: list[str] = Field(default_factory=list, alias="tags")
    estimated_difficulty: float = Field(default=0.5, alias="estimatedDifficulty")

    @field_validator("question_text", "explanation", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("options", mode="before")
    @classmethod
    def _default_options(cls, value: Any) -> Any:
        if value is None or value == []:
            return list(DEFAULT_OPTIONS)
        return value

    @field_validator("mitre_techniques", "tags", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("estimated_difficulty", mode="before")
    @classmethod
    def _clamp_difficulty(cls, value: Any) -> Any:
        if value is None:
            return 0.5
        try:
            return min(1.0, max(0.0, float(value)))
        except (TypeError, ValueError):
            return 0.5

    @model_validator(mode="after")
    def _check_answer(self) -> Self:
        if len(self.options) != 2:
            msg = f"expected exactly 2 options, got {len(self.options)}"
            raise ValueError(msg)
        if self.correct_answer not in self.options:
            # models often vary the casing ("vrai" vs "Vrai")
            matches = [o for o in self.options if o.casefold() == self.correct_answer.strip().casefold()]
            if not matches:
                msg = f"correctAnswer {self.correct_answer!r} is not one of {self.options!r}"
                raise ValueError(msg)
            self.correct_answer = matches[0]
        return self
