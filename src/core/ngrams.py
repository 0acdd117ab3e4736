"""Sliding-window n-gram extraction."""

from __future__ import annotations

from typing import List

from core.normalizer import split_words


def build_ngrams(normalized_text: str, size: int) -> List[str]:
    """Return every run of `size` consecutive words, left to right."""

    if size < 1:
        return []
    words = split_words(normalized_text)
    return [" ".join(words[i : i + size]) for i in range(len(words) - size + 1)]
