"""Question hashing utilities for cyberquiz.

Exact-duplicate detection compares hashes of normalized question text, so
variants that differ only in casing, punctuation or whitespace collapse to
the same hash.

Design goals:
- Deterministic: same input always produces same hash
- Normalization before hashing, never after
- Full SHA256 stored; short form only for display
"""

from __future__ import annotations

import hashlib
import re

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_question_text(text: str) -> str:
    """
    Normalize question text for hashing.

    Lower-cases, strips every character that is neither a word character
    nor whitespace, collapses whitespace runs to a single space and trims.

    Args:
        text: Raw question text.

    Returns:
        Normalized text.

    Example:
        >>> normalize_question_text("  What is   HTTPS?! ")
        'what is https'
    """
    normalized = _NON_WORD.sub("", text.lower())
    return _WHITESPACE.sub(" ", normalized).strip()


def sha256_hex(text: str) -> str:
    """
    Compute full SHA256 hex digest.

    Args:
        text: Input string to hash.

    Returns:
        64-character hexadecimal SHA256 digest.

    Example:
        >>> len(sha256_hex("hello"))
        64
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def question_hash(text: str) -> str:
    """
    Compute the duplicate-detection hash of a question.

    Args:
        text: Raw question text.

    Returns:
        64-character hexadecimal SHA256 digest of the normalized text.

    Example:
        >>> question_hash("What is HTTPS?") == question_hash("what is https")
        True
    """
    return sha256_hex(normalize_question_text(text))


def short_hash(value: str, length: int = 12) -> str:
    """
    Truncate a hex digest for log lines and CLI output.

    Args:
        value: Full hex digest.
        length: Number of characters to keep (default 12).

    Returns:
        Truncated digest.
    """
    return value[:length]
