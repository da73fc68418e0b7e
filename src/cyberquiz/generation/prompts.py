"""Prompts for question generation.

This module contains the prompt template sent to the content generator
and the mappings between categorical and numeric difficulty.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cyberquiz.core.types import GenerationSlot

GENERATION_PROMPT_VERSION = "v2"

# Numeric difficulty stored on questions generated for a slot
DIFFICULTY_SCORES: dict[str, float] = {
    "Beginner": 0.25,
    "Intermediate": 0.5,
    "Advanced": 0.75,
    "Expert": 0.95,
}

# Three-level difficulty used by unstructured prompts
LEGACY_DIFFICULTY: dict[str, str] = {
    "Beginner": "easy",
    "Intermediate": "medium",
    "Advanced": "hard",
    "Expert": "hard",
}

QUESTION_GENERATION_PROMPT = """Tu es un expert en cybersécurité créant une question de type {question_type}.

Sujet: {topic}
Difficulté: {difficulty}
{slot_block}
Exigences:
- Fournis un énoncé clair et sans ambiguïté EN FRANÇAIS
- Les options sont exactement ["Vrai", "Faux"]
- La clé correctAnswer doit correspondre à une des options
- Fournis une explication concise mais techniquement exacte EN FRANÇAIS
- Ajoute les identifiants MITRE ATT&CK pertinents si applicable
- Retourne uniquement du JSON valide avec les champs: questionText, options, correctAnswer, explanation, mitreTechniques (array), tags (array), estimatedDifficulty (0-1)
"""

SLOT_BLOCK = """
Contraintes de génération:
- Domaine: {domain}
- Compétence: {skill_type}
- Niveau: {difficulty}
- Granularité: {granularity}
"""

CONTEXT_BLOCK = """
Actualités récentes à utiliser comme contexte (inspire-toi de l'une d'elles si pertinent):

{context}
"""

VARIATION_HINT = (
    "\n\nAttempt {attempt}/{max_attempts}. Generate a DIFFERENT question than previous attempts. "
    "Be creative and vary the focus."
)


def score_for_difficulty(difficulty: str, default: float = 0.5) -> float:
    """Numeric difficulty in [0, 1] for a categorical slot difficulty."""
    return DIFFICULTY_SCORES.get(difficulty, default)


def legacy_difficulty(difficulty: str) -> str:
    """Map a categorical slot difficulty to easy / medium / hard."""
    return LEGACY_DIFFICULTY.get(difficulty, "medium")


def build_generation_prompt(
    *,
    slot: GenerationSlot | None = None,
    topic: str = "Cybersecurity",
    difficulty: str = "medium",
    context: str = "",
    attempt: int = 0,
    max_attempts: int = 3,
    question_type: str = "true-false",
) -> str:
    """Build the prompt for one generation attempt.

    With a slot, the topic is the slot's domain, the difficulty its legacy
    mapping, and all four slot attributes are listed as constraints.
    Without one, ``topic`` and ``difficulty`` are used as given.

    Args:
        slot: Structured constraints, or None for unstructured generation.
        topic: Topic used when no slot is given.
        difficulty: easy / medium / hard, used when no slot is given.
        context: Rendered external context, appended when non-empty.
        attempt: 0-indexed attempt number; attempts after the first ask
            for a different question.
        max_attempts: Total attempts allowed, shown in the variation hint.
        question_type: Question format requested.

    Returns:
        The prompt text.

    Example:
        >>> prompt = build_generation_prompt(topic="Phishing", attempt=1)
        >>> "Attempt 2/3" in prompt
        True
    """
    slot_block = ""
    if slot is not None:
        topic = slot.domain
        difficulty = legacy_difficulty(slot.difficulty)
        slot_block = SLOT_BLOCK.format(
            domain=slot.domain,
            skill_type=slot.skill_type,
            difficulty=slot.difficulty,
            granularity=slot.granularity,
        )

    prompt = QUESTION_GENERATION_PROMPT.format(
        question_type=question_type,
        topic=topic,
        difficulty=difficulty,
        slot_block=slot_block,
    )
    if context:
        prompt += CONTEXT_BLOCK.format(context=context)
    if attempt > 0:
        prompt += VARIATION_HINT.format(attempt=attempt + 1, max_attempts=max_attempts)
    return prompt
