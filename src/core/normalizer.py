"""Text normalization shared by every matching strategy."""

from __future__ import annotations

import re
from typing import List

# \w already covers Cyrillic and Latin letters in Python 3 str patterns.
_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Return lowercase text with punctuation removed and whitespace collapsed.

    The letter "ё" is folded into "е" so both spellings compare equal.
    """

    if not text:
        return ""
    lowered = text.lower().replace("ё", "е")
    cleaned = _NON_WORD.sub(" ", lowered)
    return _WHITESPACE.sub(" ", cleaned).strip()


def split_words(normalized_text: str) -> List[str]:
    """Split normalized text into words, dropping single characters."""

    return [word for word in normalized_text.split(" ") if len(word) > 1]
