from __future__ import annotations

from collections.abc import Iterable, Sequence

from .keywords import KeywordIndex
from .normalize import normalize
from .types import (
    IntentScore,
    IntentTypeMapping,
    KeywordEntry,
    SearchIntent,
    SuggestionResult,
)

MAX_INTENTS = 3
MAX_TYPES = 8


class IntentScorer:
    """Keyword-weighted intent detection for free-text search input."""

    def __init__(
        self,
        intents: Iterable[SearchIntent],
        keywords: Iterable[KeywordEntry],
        *,
        limit: int = MAX_INTENTS,
    ) -> None:
        self._intents = {intent.id: intent for intent in intents}
        self._index = keywords if isinstance(keywords, KeywordIndex) else KeywordIndex(keywords)
        self.limit = limit

    def score(self, query: str) -> list[IntentScore]:
        normalized = normalize(query)
        if not normalized.strip():
            return []

        # insertion order = first matching keyword, which is the tie-break order
        scores: dict[int, int] = {}
        for entry in self._index.matches(normalized):
            scores[entry.intent_id] = scores.get(entry.intent_id, 0) + entry.weight

        ranked: list[IntentScore] = []
        for intent_id, total in scores.items():
            intent = self._intents.get(intent_id)
            if intent is None or not intent.active or total <= 0:
                continue
            ranked.append(IntentScore(intent=intent, score=total))
        ranked.sort(key=lambda row: row.score, reverse=True)
        return ranked[: self.limit]


class TypeSuggester:
    def __init__(self, mappings: Iterable[IntentTypeMapping], *, limit: int = MAX_TYPES) -> None:
        self._by_intent: dict[int, list[str]] = {}
        for mapping in mappings:
            self._by_intent.setdefault(mapping.intent_id, []).append(mapping.type_label)
        self.limit = limit

    def suggest(self, top_intents: Sequence[SearchIntent]) -> list[str]:
        # labels are display strings: exact comparison, no normalization
        seen: set[str] = set()
        labels: list[str] = []
        for intent in top_intents:
            for label in self._by_intent.get(intent.id, ()):
                if label in seen:
                    continue
                seen.add(label)
                labels.append(label)
                if len(labels) >= self.limit:
                    return labels
        return labels


class Suggester:
    """Query -> top intents + suggested establishment types."""

    def __init__(self, scorer: IntentScorer, types: TypeSuggester) -> None:
        self.scorer = scorer
        self.types = types

    @classmethod
    def from_catalog(cls, catalog) -> Suggester:
        return cls(
            IntentScorer(catalog.lookup_intents(), catalog.lookup_keywords()),
            TypeSuggester(catalog.lookup_intent_types()),
        )

    def score_intents(self, query: str) -> list[IntentScore]:
        return self.scorer.score(query)

    def suggest_types(self, top_intents: Sequence[SearchIntent]) -> list[str]:
        return self.types.suggest(top_intents)

    def suggest(self, query: str) -> SuggestionResult:
        intents = [row.intent for row in self.score_intents(query)]
        return SuggestionResult(intents=intents, types=self.suggest_types(intents))
