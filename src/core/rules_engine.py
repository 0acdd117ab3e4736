"""Keyword matching pipeline (core domain).

Every keyword rule is evaluated against one NormalizedMessage with an ordered
list of strategies; the first strategy that hits decides the match type and
the remaining ones are skipped. The pipeline is pure: the lexicon is
read-only and nothing here raises for malformed input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from core.fuzzy import fuzzy_match
from core.keyword_rules import KeywordMode, KeywordRule, parse_keyword
from core.lexicon import DEFAULT_LEXICON, Lexicon
from core.ngrams import build_ngrams
from core.normalizer import normalize_text, split_words
from core.stemmer import stem

# Length floors keep short words from matching half the dictionary.
MIN_STEM_WORD_LENGTH = 4
MIN_FUZZY_WORD_LENGTH = 6
WORD_FUZZY_THRESHOLD = 0.8
NGRAM_FUZZY_THRESHOLD = 0.75
PATTERN_FUZZY_THRESHOLD = 0.6
MIN_CAPTURE_LENGTH = 3

# Intent phrases followed by the word we try to match against pattern targets.
INTENT_PHRASES: Tuple[str, ...] = (
    "ищу",
    "нужен",
    "нужна",
    "нужно",
    "требуется",
    "посоветуйте",
    "порекомендуйте",
    "подскажите",
    "кто знает",
    "looking for",
    "need an",
    "need a",
    "can anyone recommend",
    "recommend a",
    "hiring",
)

_INTENT_PATTERNS = tuple(
    re.compile(rf"(?<!\w){re.escape(phrase)}\s+(\S+)") for phrase in INTENT_PHRASES
)


class MatchType(str, Enum):
    EXACT = "exact"
    EXACT_STRICT = "exact-strict"
    STEM = "stem"
    SYNONYM = "synonym"
    FUZZY = "fuzzy"
    NGRAM = "ngram"
    ALL_REQUIRED = "all-required"


@dataclass(frozen=True)
class MatchDetail:
    """Why a single keyword matched."""

    keyword: str
    match_type: MatchType
    evidence: str
    sub_types: Tuple[MatchType, ...] = ()

    @property
    def label(self) -> str:
        if not self.sub_types:
            return self.match_type.value
        return f"{self.match_type.value} ({'+'.join(t.value for t in self.sub_types)})"


@dataclass(frozen=True)
class PatternMatch:
    """An intent phrase whose captured word resembles a pattern target."""

    phrase: str
    target: str
    captured: str


@dataclass(frozen=True)
class MatchResult:
    """Outcome of evaluating one message against a ruleset."""

    matched_keywords: Tuple[str, ...] = ()
    details: Tuple[MatchDetail, ...] = ()
    pattern_matches: Tuple[PatternMatch, ...] = ()

    @property
    def matched(self) -> bool:
        return bool(self.matched_keywords or self.pattern_matches)


UNMATCHED = MatchResult()


@dataclass(frozen=True)
class NormalizedMessage:
    """Message text prepared once and shared by all rules of an evaluation."""

    text: str
    words: Tuple[str, ...]
    stems: Tuple[str, ...]

    @classmethod
    def from_text(cls, text: str, lexicon: Lexicon = DEFAULT_LEXICON) -> "NormalizedMessage":
        normalized = normalize_text(text or "")
        words = tuple(w for w in split_words(normalized) if w not in lexicon.stop_words)
        stems = tuple(stem(w, lexicon.suffixes) for w in words)
        return cls(text=normalized, words=words, stems=stems)

    def find_stem(self, value: str) -> Optional[int]:
        try:
            return self.stems.index(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class _Hit:
    match_type: MatchType
    evidence: str


_Strategy = Callable[[KeywordRule, NormalizedMessage], Optional[_Hit]]


class KeywordMatcher:
    """Evaluate keyword rules against message text."""

    def __init__(self, lexicon: Lexicon = DEFAULT_LEXICON) -> None:
        self._lexicon = lexicon
        self._smart_strategies: Tuple[_Strategy, ...] = (
            self._by_phrase,
            self._by_stem,
            self._by_synonym,
            self._by_fuzzy_word,
            self._by_ngram,
        )

    @property
    def lexicon(self) -> Lexicon:
        return self._lexicon

    def _stem(self, word: str) -> str:
        return stem(word, self._lexicon.suffixes)

    def _fuzzy(self, first: str, second: str, threshold: float) -> bool:
        return fuzzy_match(first, second, threshold, self._lexicon.suffixes)

    def _synonym_stems(self, part: str) -> List[Tuple[str, str]]:
        """Return (synonym, stem) pairs long enough for stem comparison."""

        candidates = []
        for synonym in sorted(self._lexicon.synonyms.expand(part)):
            if len(synonym) < MIN_STEM_WORD_LENGTH:
                continue
            synonym_stem = self._stem(synonym)
            if len(synonym_stem) < MIN_STEM_WORD_LENGTH:
                continue
            candidates.append((synonym, synonym_stem))
        return candidates

    # Smart-mode strategies, in evaluation order.

    def _by_phrase(self, rule: KeywordRule, message: NormalizedMessage) -> Optional[_Hit]:
        if rule.normalized_phrase in message.text:
            return _Hit(MatchType.EXACT, rule.raw)
        return None

    def _by_stem(self, rule: KeywordRule, message: NormalizedMessage) -> Optional[_Hit]:
        for part in rule.parts:
            if len(part) < MIN_STEM_WORD_LENGTH:
                continue
            part_stem = self._stem(part)
            if len(part_stem) < MIN_STEM_WORD_LENGTH:
                continue
            index = message.find_stem(part_stem)
            if index is not None:
                return _Hit(MatchType.STEM, f"{message.words[index]} (stem: {part_stem})")
        return None

    def _by_synonym(self, rule: KeywordRule, message: NormalizedMessage) -> Optional[_Hit]:
        for part in rule.parts:
            if len(part) < MIN_STEM_WORD_LENGTH:
                continue
            for synonym, synonym_stem in self._synonym_stems(part):
                index = message.find_stem(synonym_stem)
                if index is not None:
                    return _Hit(
                        MatchType.SYNONYM,
                        f"{message.words[index]} → {synonym} (synonym of {part})",
                    )
        return None

    def _by_fuzzy_word(self, rule: KeywordRule, message: NormalizedMessage) -> Optional[_Hit]:
        for part in rule.parts:
            if len(part) < MIN_FUZZY_WORD_LENGTH:
                continue
            for word in message.words:
                if len(word) < MIN_FUZZY_WORD_LENGTH:
                    continue
                if self._fuzzy(word, part, WORD_FUZZY_THRESHOLD):
                    return _Hit(MatchType.FUZZY, f"{word} ≈ {part}")
        return None

    def _by_ngram(self, rule: KeywordRule, message: NormalizedMessage) -> Optional[_Hit]:
        if len(rule.parts) < 2:
            return None
        joined = " ".join(rule.parts)
        for ngram in build_ngrams(message.text, len(rule.parts)):
            if self._fuzzy(ngram, joined, NGRAM_FUZZY_THRESHOLD):
                return _Hit(MatchType.NGRAM, f"{ngram} ≈ {joined}")
        return None

    # Mode handlers.

    def _resolve_word(self, part: str, message: NormalizedMessage) -> Optional[_Hit]:
        """Find one required word: exact token, then stem, then synonym stem."""

        if part in message.words:
            return _Hit(MatchType.EXACT, part)

        part_stem = self._stem(part)
        if len(part_stem) >= MIN_STEM_WORD_LENGTH:
            index = message.find_stem(part_stem)
            if index is not None:
                return _Hit(MatchType.STEM, message.words[index])

        if len(part) >= MIN_STEM_WORD_LENGTH:
            for synonym, synonym_stem in self._synonym_stems(part):
                index = message.find_stem(synonym_stem)
                if index is not None:
                    return _Hit(MatchType.SYNONYM, f"{message.words[index]} → {synonym}")
        return None

    def _match_exact(self, rule: KeywordRule, message: NormalizedMessage) -> Optional[MatchDetail]:
        if rule.normalized_phrase in message.text:
            return MatchDetail(rule.raw, MatchType.EXACT_STRICT, rule.phrase)
        return None

    def _match_all_required(self, rule: KeywordRule, message: NormalizedMessage) -> Optional[MatchDetail]:
        # Stop words are dropped from messages, so they cannot be required.
        required = [part for part in rule.parts if part not in self._lexicon.stop_words]
        if not required:
            return None
        found: List[str] = []
        used_types: List[MatchType] = []
        for part in required:
            hit = self._resolve_word(part, message)
            if hit is None:
                return None
            found.append(hit.evidence)
            if hit.match_type not in used_types:
                used_types.append(hit.match_type)
        return MatchDetail(
            rule.raw,
            MatchType.ALL_REQUIRED,
            " + ".join(found),
            sub_types=tuple(used_types),
        )

    def _match_smart(self, rule: KeywordRule, message: NormalizedMessage) -> Optional[MatchDetail]:
        for strategy in self._smart_strategies:
            hit = strategy(rule, message)
            if hit is not None:
                return MatchDetail(rule.raw, hit.match_type, hit.evidence)
        return None

    def match_rule(self, rule: KeywordRule, message: NormalizedMessage) -> Optional[MatchDetail]:
        """Return the first successful match for one rule, if any."""

        # An empty phrase would be a substring of every message.
        if not rule.normalized_phrase:
            return None
        if rule.mode is KeywordMode.EXACT:
            return self._match_exact(rule, message)
        if rule.mode is KeywordMode.ALL_REQUIRED and len(rule.parts) > 1:
            return self._match_all_required(rule, message)
        return self._match_smart(rule, message)

    def match(self, text: str, keywords: Optional[Iterable[str]]) -> MatchResult:
        """Match raw keywords against message text."""

        if not text or not keywords:
            return UNMATCHED

        message = NormalizedMessage.from_text(text, self._lexicon)
        matched: List[str] = []
        details: List[MatchDetail] = []
        for raw in keywords:
            if not isinstance(raw, str) or raw in matched:
                continue
            detail = self.match_rule(parse_keyword(raw), message)
            if detail is not None:
                matched.append(raw)
                details.append(detail)

        return MatchResult(matched_keywords=tuple(matched), details=tuple(details))

    def match_patterns(self, text: str, targets: Optional[Sequence[str]]) -> Tuple[PatternMatch, ...]:
        """Find intent phrases whose captured word resembles one of the targets."""

        if not text or not targets:
            return ()

        normalized = normalize_text(text)
        hits: List[PatternMatch] = []
        for pattern in _INTENT_PATTERNS:
            for found in pattern.finditer(normalized):
                captured = found.group(1)
                if len(captured) < MIN_CAPTURE_LENGTH:
                    continue
                for target in targets:
                    if not isinstance(target, str) or not normalize_text(target):
                        continue
                    if self._fuzzy(captured, normalize_text(target), PATTERN_FUZZY_THRESHOLD):
                        hits.append(PatternMatch(phrase=found.group(0), target=target, captured=captured))
        return tuple(hits)

    def analyze(
        self,
        text: str,
        keywords: Optional[Iterable[str]],
        targets: Optional[Sequence[str]] = None,
    ) -> MatchResult:
        """Run keyword matching and the intent pattern layer together."""

        keyword_result = self.match(text, keywords)
        pattern_matches = self.match_patterns(text, targets)
        if not pattern_matches:
            return keyword_result
        return MatchResult(
            matched_keywords=keyword_result.matched_keywords,
            details=keyword_result.details,
            pattern_matches=pattern_matches,
        )
