"""Fuzzy string comparison (core domain).

Cheap checks run first (equality, containment, stems); the Levenshtein
distance from RapidFuzz is only computed when those fail.
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein

from core.normalizer import normalize_text
from core.stemmer import DEFAULT_SUFFIXES, SuffixTable, stem

DEFAULT_THRESHOLD = 0.75


def is_contained(first: str, second: str) -> bool:
    """Return True when the strings are equal or one contains the other."""

    return first == second or first in second or second in first


def levenshtein_distance(first: str, second: str) -> int:
    """Unit-cost edit distance (insert, delete, substitute)."""

    return Levenshtein.distance(first, second)


def similarity(first: str, second: str) -> float:
    """Return 1 - distance / longest length, in the range [0, 1]."""

    longest = max(len(first), len(second))
    if longest == 0:
        return 1.0
    return 1 - levenshtein_distance(first, second) / longest


def fuzzy_match(
    first: str,
    second: str,
    threshold: float = DEFAULT_THRESHOLD,
    suffixes: SuffixTable = DEFAULT_SUFFIXES,
) -> bool:
    """Return True if two strings are similar enough to count as a match.

    The check is symmetric: fuzzy_match(a, b) == fuzzy_match(b, a). An empty
    operand only matches another empty one, never by containment.
    """

    left = normalize_text(first)
    right = normalize_text(second)
    if not left or not right:
        return left == right

    if is_contained(left, right):
        return True

    if is_contained(stem(left, suffixes), stem(right, suffixes)):
        return True

    longest = max(len(left), len(right))
    if longest < 3:
        return left == right

    return similarity(left, right) >= threshold
