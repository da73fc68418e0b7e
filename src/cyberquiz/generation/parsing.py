"""JSON parsing utilities for question generation.

This module turns raw model output into a GeneratedCandidate. Models
wrap the JSON in prose or code fences, and some add ``//`` comments
inside the object, so parsing scans for the first balanced object and
strips comments outside string literals before decoding.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from cyberquiz.core.exceptions import TransientGenerationError
from cyberquiz.generation.models import GeneratedCandidate

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


def strip_line_comments(text: str) -> str:
    """Remove ``//`` comments that are outside JSON string literals.

    Args:
        text: JSON-like text.

    Returns:
        The text with every comment removed up to the end of its line.

    Example:
        >>> strip_line_comments('{"a": "http://x" // link\\n}')
        '{"a": "http://x" \\n}'
    """
    out: list[str] = []
    in_string = False
    escape = False
    i = 0
    while i < len(text):
        char = text[i]
        if in_string:
            out.append(char)
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            i += 1
            continue
        if char == '"':
            in_string = True
        elif char == "/" and text.startswith("//", i):
            end = text.find("\n", i)
            if end == -1:
                break
            i = end
            continue
        out.append(char)
        i += 1
    return "".join(out)


def iter_json_objects(text: str) -> Iterator[str]:
    """Yield every top-level balanced ``{...}`` slice of ``text``, in order.

    Braces inside string literals are ignored.
    """
    start = -1
    depth = 0
    in_string = False
    escape = False
    for i, char in enumerate(text):
        if escape:
            escape = False
            continue
        if char == "\\":
            escape = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0 and start != -1:
                yield text[start : i + 1]
                start = -1


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse the first JSON object from LLM response.

    Handles cases where the JSON object is embedded in surrounding text,
    returned inside a one-element array, or carries line comments.

    Args:
        text: The LLM response text.

    Returns:
        Parsed dictionary, or empty dict if parsing fails.

    Example:
        >>> parse_json_object('{"valid": true}')
        {'valid': True}
        >>> parse_json_object('Voici la question: {"valid": false} Bonne chance')
        {'valid': False}
    """
    text = text.strip()

    # Try direct parse first
    try:
        result = json.loads(text)
        if isinstance(result, dict):
            return result
        if isinstance(result, list) and result and isinstance(result[0], dict):
            return result[0]
    except json.JSONDecodeError:
        pass

    for candidate in iter_json_objects(text):
        try:
            result = json.loads(strip_line_comments(candidate))
        except json.JSONDecodeError:
            logger.debug(f"Skipping unparsable JSON slice: {candidate[:80]!r}")
            continue
        if isinstance(result, dict):
            return result

    return {}


def parse_candidate(raw: str) -> GeneratedCandidate:
    """Parse raw model output into a question candidate.

    Args:
        raw: Text returned by the content generator.

    Returns:
        The validated candidate.

    Raises:
        TransientGenerationError: If the output is empty, holds no JSON
            object, or the object is not a valid true/false question.
    """
    if not raw or not raw.strip():
        msg = "Empty response from content generator"
        raise TransientGenerationError(msg)

    data = parse_json_object(raw)
    if not data:
        msg = "No JSON object found in model output"
        raise TransientGenerationError(msg)

    try:
        return GeneratedCandidate.model_validate(data)
    except ValidationError as e:
        msg = f"Model output is not a valid question: {e.error_count()} error(s), first: {e.errors()[0]['msg']}"
        raise TransientGenerationError(msg) from e
