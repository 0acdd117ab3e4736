"""Synonym table and expansion (core domain).

Each dictionary entry is an equivalence class: the key plus its listed
synonyms. Forms are normalized and stemmed once when the table is built so
expansion per message only does string comparisons.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Mapping, Tuple

from core.fuzzy import is_contained
from core.normalizer import normalize_text
from core.stemmer import DEFAULT_SUFFIXES, SuffixTable, stem

DEFAULT_SYNONYMS: Dict[str, List[str]] = {
    # Developers
    "программист": ["разработчик", "девелопер", "developer", "кодер", "программер", "прогер", "вайбкодер"],
    "разработчик": ["программист", "девелопер", "developer", "кодер", "программер", "прогер", "вайбкодер"],
    "фронтенд": ["frontend", "фронт", "верстальщик", "react", "vue", "angular"],
    "бэкенд": ["backend", "бэк", "серверный"],
    "фулстек": ["fullstack", "full-stack", "фуллстек"],
    # Designers
    "дизайнер": ["designer", "дизайн", "ui", "ux", "уидизайнер", "юидизайнер"],
    "графический": ["graphic", "графика"],
    # Search intent
    "ищу": ["нужен", "нужна", "нужно", "требуется", "looking"],
    "посоветуйте": ["порекомендуйте", "подскажите", "recommend", "посоветовать"],
    # Marketing
    "маркетолог": ["marketer", "маркетинг", "smm", "смм", "таргетолог"],
    # Management
    "менеджер": ["manager", "pm", "пм", "проджект"],
}


@dataclass(frozen=True)
class SynonymClass:
    """One equivalence class with its precomputed comparison forms."""

    key: str
    members: Tuple[str, ...]
    # (normalized, stemmed) pairs for the key and every member
    probes: Tuple[Tuple[str, str], ...]
    forms: FrozenSet[str]


@dataclass(frozen=True)
class SynonymTable:
    """Read-only synonym dictionary with closure lookup over keys and members."""

    classes: Tuple[SynonymClass, ...]
    suffixes: SuffixTable = DEFAULT_SUFFIXES

    @classmethod
    def build(
        cls,
        mapping: Mapping[str, Iterable[str]],
        suffixes: SuffixTable = DEFAULT_SUFFIXES,
    ) -> "SynonymTable":
        classes: List[SynonymClass] = []
        for key, values in mapping.items():
            words = [key, *values]
            probes = []
            forms = set()
            for word in words:
                normalized = normalize_text(word)
                if not normalized:
                    continue
                stemmed = stem(normalized, suffixes)
                probes.append((normalized, stemmed))
                forms.update((normalized, stemmed))
            if not probes:
                continue
            classes.append(
                SynonymClass(
                    key=normalize_text(key),
                    members=tuple(normalize_text(v) for v in values if normalize_text(v)),
                    probes=tuple(probes),
                    forms=frozenset(forms),
                )
            )
        return cls(classes=tuple(classes), suffixes=suffixes)

    def __len__(self) -> int:
        return len(self.classes)

    def expand(self, word: str) -> FrozenSet[str]:
        """Return the word's forms plus every class it belongs to."""

        normalized = normalize_text(word)
        if not normalized:
            return frozenset()
        stemmed = stem(normalized, self.suffixes)
        result = {normalized, stemmed}

        for entry in self.classes:
            for probe_norm, probe_stem in entry.probes:
                if is_contained(normalized, probe_norm) or is_contained(stemmed, probe_stem):
                    result.update(entry.forms)
                    break
        return frozenset(result)


DEFAULT_SYNONYM_TABLE = SynonymTable.build(DEFAULT_SYNONYMS)
