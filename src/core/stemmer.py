"""Suffix-stripping stemmer (core domain).

The stemmer is intentionally naive: one greedy pass over a longest-first
suffix list. It is tuned for Russian inflection; the table is configuration,
so other suffix sets can be swapped in without code changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

MIN_STEMMABLE_LENGTH = 4
MIN_STEM_LENGTH = 2

RUSSIAN_SUFFIXES: Tuple[str, ...] = (
    "ами", "ями", "ому", "ему", "ого", "его", "ить", "ать", "еть",
    "ов", "ев", "ей", "ий", "ый", "ой", "ая", "яя", "ое", "ее",
    "ам", "ям", "ах", "ях", "ом", "ем", "им", "ым",
    "а", "я", "о", "е", "и", "ы", "у", "ю",
)


@dataclass(frozen=True)
class SuffixTable:
    """Ordered inflectional suffixes, longest first."""

    suffixes: Tuple[str, ...]

    @classmethod
    def build(cls, suffixes: Iterable[str]) -> "SuffixTable":
        unique = {s.strip().lower() for s in suffixes if s and s.strip()}
        # Stable order for equal lengths keeps stemming deterministic.
        ordered = sorted(unique, key=lambda s: (-len(s), s))
        return cls(suffixes=tuple(ordered))

    def __len__(self) -> int:
        return len(self.suffixes)


DEFAULT_SUFFIXES = SuffixTable.build(RUSSIAN_SUFFIXES)


def stem(word: str, suffixes: SuffixTable = DEFAULT_SUFFIXES) -> str:
    """Strip the longest matching suffix from a normalized word."""

    if len(word) < MIN_STEMMABLE_LENGTH:
        return word

    for suffix in suffixes.suffixes:
        if word.endswith(suffix) and len(word) - len(suffix) >= MIN_STEM_LENGTH:
            return word[: -len(suffix)]
    return word
