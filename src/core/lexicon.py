"""Matching tables bundled into one immutable configuration object.

The lexicon is built once at startup and passed by reference to the matcher,
so tests can substitute small fixtures without touching module state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from core.errors import ConfigError
from core.normalizer import normalize_text
from core.stemmer import DEFAULT_SUFFIXES, RUSSIAN_SUFFIXES, SuffixTable
from core.synonyms import DEFAULT_SYNONYM_TABLE, DEFAULT_SYNONYMS, SynonymTable

DEFAULT_STOP_WORDS: FrozenSet[str] = frozenset(
    {
        "и", "в", "на", "с", "по", "для", "от", "за", "к", "из",
        "а", "но", "или", "что", "как", "это", "так", "же",
        "не", "да", "нет", "бы", "ли", "то", "вот", "еще",
        "уже", "тоже", "только", "очень", "может", "быть",
        "привет", "здравствуйте", "спасибо", "пожалуйста",
    }
)


@dataclass(frozen=True)
class Lexicon:
    """Suffixes, synonyms and stop-words used by the match pipeline."""

    suffixes: SuffixTable = DEFAULT_SUFFIXES
    synonyms: SynonymTable = DEFAULT_SYNONYM_TABLE
    stop_words: FrozenSet[str] = field(default=DEFAULT_STOP_WORDS)


DEFAULT_LEXICON = Lexicon()


def build_lexicon(config: Optional[dict]) -> Lexicon:
    """Build a lexicon from the `matching` config section.

    Omitted keys fall back to the built-in Russian tables. Tables that are
    present but empty are a startup error, since matching would silently
    degrade to plain substring checks.
    """

    config = config or {}

    raw_suffixes = config.get("suffixes", RUSSIAN_SUFFIXES)
    suffixes = SuffixTable.build(raw_suffixes or [])
    if not suffixes:
        raise ConfigError("matching.suffixes must not be empty")

    raw_synonyms = config.get("synonyms", DEFAULT_SYNONYMS)
    if not isinstance(raw_synonyms, dict):
        raise ConfigError("matching.synonyms must be a mapping of word -> list of synonyms")
    synonyms = SynonymTable.build(raw_synonyms, suffixes)
    if not synonyms:
        raise ConfigError("matching.synonyms must not be empty")

    raw_stop_words = config.get("stop_words", DEFAULT_STOP_WORDS)
    stop_words = frozenset(normalize_text(word) for word in raw_stop_words if normalize_text(word))

    return Lexicon(suffixes=suffixes, synonyms=synonyms, stop_words=stop_words)
