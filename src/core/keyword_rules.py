"""Keyword rule parsing (core domain).

Users control the matching mode with plain punctuation:
- "phrase", «phrase» or 'phrase' -> exact phrase only
- [several words]                -> every word must be present
- anything else                  -> smart matching (stems, synonyms, typos)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from core.normalizer import normalize_text, split_words

_QUOTE_PAIRS = (('"', '"'), ("«", "»"), ("'", "'"))
_LIST_SEPARATORS = re.compile(r"[,;\n]+")


class KeywordMode(str, Enum):
    EXACT = "exact"
    ALL_REQUIRED = "all_required"
    SMART = "smart"


@dataclass(frozen=True)
class KeywordRule:
    """A raw keyword classified into a matching mode."""

    raw: str
    mode: KeywordMode
    phrase: str
    parts: Tuple[str, ...]

    @property
    def normalized_phrase(self) -> str:
        return normalize_text(self.phrase)


def _classify(trimmed: str) -> Tuple[KeywordMode, str]:
    if len(trimmed) >= 2 and trimmed.startswith("[") and trimmed.endswith("]"):
        return KeywordMode.ALL_REQUIRED, trimmed[1:-1]

    for opening, closing in _QUOTE_PAIRS:
        if len(trimmed) >= 2 and trimmed.startswith(opening) and trimmed.endswith(closing):
            return KeywordMode.EXACT, trimmed[1:-1]

    return KeywordMode.SMART, trimmed


def parse_keyword(raw: str) -> KeywordRule:
    """Classify a raw keyword string. Total: never raises for str input."""

    trimmed = (raw or "").strip()
    mode, phrase = _classify(trimmed)
    parts = tuple(split_words(normalize_text(phrase)))
    return KeywordRule(raw=raw, mode=mode, phrase=phrase, parts=parts)


def parse_keyword_list(text: str) -> List[str]:
    """Split a user-entered keyword list on commas, semicolons and newlines."""

    if not text:
        return []
    return [item.strip() for item in _LIST_SEPARATORS.split(text) if item.strip()]
