# /src/shared/utils/glob.py
"""
Bounded glob matching for cache invalidation.

Only `*` is special (any sequence of characters, including none); every other
character matches itself. Matching is iterative with single-star backtracking,
so the cost is at most len(pattern) * len(text) steps and never recursive.
"""

from __future__ import annotations

from src.shared.exceptions import ValidationError

DEFAULT_MAX_PATTERN_LENGTH = 256


def validate_pattern(pattern: str, *, max_length: int = DEFAULT_MAX_PATTERN_LENGTH) -> str:
    if not isinstance(pattern, str):
        raise ValidationError("Glob pattern must be a string")
    if len(pattern) > max_length:
        raise ValidationError(
            f"Glob pattern too long ({len(pattern)} > {max_length})",
            details={"max_length": max_length},
        )
    return pattern


def glob_match(pattern: str, text: str) -> bool:
    """Whole-string match of `text` against `pattern`."""
    p = t = 0
    star = -1
    mark = 0
    while t < len(text):
        if p < len(pattern) and pattern[p] != "*" and pattern[p] == text[t]:
            p += 1
            t += 1
        elif p < len(pattern) and pattern[p] == "*":
            star = p
            mark = t
            p += 1
        elif star != -1:
            # let the last star absorb one more character
            p = star + 1
            mark += 1
            t = mark
        else:
            return False
    while p < len(pattern) and pattern[p] == "*":
        p += 1
    return p == len(pattern)
