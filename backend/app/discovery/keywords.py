from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .normalize import normalize
from .types import KeywordEntry


@dataclass(frozen=True)
class IndexedKeyword:
    intent_id: int
    keyword: str
    normalized: str
    weight: int


class KeywordIndex:
    """Ordered keyword table; iteration order is the tie-break order for scoring."""

    def __init__(self, entries: Iterable[KeywordEntry]) -> None:
        indexed: list[IndexedKeyword] = []
        for entry in entries:
            if entry.weight <= 0:
                raise ValueError(f"keyword {entry.keyword!r} must have a positive weight")
            normalized = normalize(entry.keyword)
            if not normalized:
                continue
            indexed.append(
                IndexedKeyword(
                    intent_id=entry.intent_id,
                    keyword=entry.keyword,
                    normalized=normalized,
                    weight=entry.weight,
                )
            )
        self._entries: tuple[IndexedKeyword, ...] = tuple(indexed)

    def __iter__(self) -> Iterator[IndexedKeyword]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def matches(self, normalized_query: str) -> Iterator[IndexedKeyword]:
        """Entries whose keyword occurs anywhere in the query (no word boundaries)."""
        for entry in self._entries:
            if entry.normalized in normalized_query:
                yield entry
