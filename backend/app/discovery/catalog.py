"""Reference catalogs (states, cities, establishments, search intents).

Catalogs are loaded once per process and treated as read-only. Scoring and search
code only see a `CatalogRepository`, so the JSON seed can be swapped for a real
persistence backend without touching them.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol, TypeVar

from ..settings import settings
from .types import (
    City,
    Establishment,
    IntentTypeMapping,
    KeywordEntry,
    SearchIntent,
    State,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CatalogIntegrityError(RuntimeError):
    """Raised when seed data is malformed or carries conflicting identities."""


class CatalogRepository(Protocol):
    def lookup_states(self) -> Sequence[State]: ...

    def lookup_cities(self) -> Sequence[City]: ...

    def lookup_establishments(self) -> Sequence[Establishment]: ...

    def lookup_intents(self) -> Sequence[SearchIntent]: ...

    def lookup_keywords(self) -> Sequence[KeywordEntry]: ...

    def lookup_intent_types(self) -> Sequence[IntentTypeMapping]: ...


def unique_by_id(records: Iterable[T], *, kind: str, key: Callable[[T], Any] | None = None) -> list[T]:
    """
    Keep the first record for every identity.

    Exact duplicates are dropped with a warning; two different records sharing an
    identity abort the load.
    """
    key = key or (lambda record: record.id)  # type: ignore[attr-defined]
    seen: dict[Any, T] = {}
    out: list[T] = []
    for record in records:
        identity = key(record)
        existing = seen.get(identity)
        if existing is None:
            seen[identity] = record
            out.append(record)
            continue
        if existing != record:
            raise CatalogIntegrityError(f"Conflicting {kind} records share id {identity!r}")
        logger.warning("Dropping duplicate %s record with id %r", kind, identity)
    return out


@dataclass(frozen=True)
class StaticCatalog:
    """In-memory repository; also the shape tests build catalogs with."""

    states: tuple[State, ...] = ()
    cities: tuple[City, ...] = ()
    establishments: tuple[Establishment, ...] = ()
    intents: tuple[SearchIntent, ...] = ()
    keywords: tuple[KeywordEntry, ...] = ()
    intent_types: tuple[IntentTypeMapping, ...] = ()

    def lookup_states(self) -> Sequence[State]:
        return self.states

    def lookup_cities(self) -> Sequence[City]:
        return self.cities

    def lookup_establishments(self) -> Sequence[Establishment]:
        return self.establishments

    def lookup_intents(self) -> Sequence[SearchIntent]:
        return self.intents

    def lookup_keywords(self) -> Sequence[KeywordEntry]:
        return self.keywords

    def lookup_intent_types(self) -> Sequence[IntentTypeMapping]:
        return self.intent_types


def _read_json_list(path: Path) -> list[dict[str, Any]]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise CatalogIntegrityError(f"Missing catalog file: {path}") from exc
    except json.JSONDecodeError as exc:
        raise CatalogIntegrityError(f"Invalid catalog data: {path}") from exc
    if not isinstance(payload, list):
        raise CatalogIntegrityError(f"Catalog file must hold a JSON list: {path}")
    return [item for item in payload if isinstance(item, dict)]


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


class JsonCatalogRepository(StaticCatalog):
    """Loads the seed JSON files from a catalog directory."""

    FILES = {
        "states": "states.json",
        "cities": "cities.json",
        "establishments": "establishments.json",
        "intents": "search_intents.json",
        "keywords": "search_keywords.json",
        "intent_types": "intent_types.json",
    }

    def __init__(self, directory: Path) -> None:
        directory = Path(directory)

        def rows(name: str) -> list[dict[str, Any]]:
            return _read_json_list(directory / self.FILES[name])

        try:
            states = unique_by_id(
                (State(id=int(r["id"]), name=str(r["name"]), uf=str(r["uf"]).upper())
                 for r in rows("states")),
                kind="state",
            )
            uf_by_state = {state.id: state.uf for state in states}
            cities = unique_by_id(
                (self._city(r, uf_by_state) for r in rows("cities")), kind="city"
            )
            establishments = unique_by_id(
                (self._establishment(r) for r in rows("establishments")), kind="establishment"
            )
            intents = unique_by_id(
                (
                    SearchIntent(
                        id=int(r["id"]),
                        name=str(r["name"]),
                        active=bool(r.get("active", True)),
                        priority=int(r.get("priority", 3)),
                    )
                    for r in rows("intents")
                ),
                kind="search intent",
            )
            keywords = [self._keyword(r) for r in rows("keywords")]
            intent_types = [
                IntentTypeMapping(
                    intent_id=int(r["intent_id"]),
                    type_label=str(r["type"]),
                    weight=int(r.get("weight", 0)),
                )
                for r in rows("intent_types")
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise CatalogIntegrityError(f"Malformed catalog in {directory}: {exc}") from exc

        super().__init__(
            states=tuple(states),
            cities=tuple(cities),
            establishments=tuple(establishments),
            intents=tuple(intents),
            keywords=tuple(keywords),
            intent_types=tuple(intent_types),
        )
        logger.info(
            "Loaded catalog from %s: %d states, %d cities, %d establishments, %d keywords",
            directory,
            len(states),
            len(cities),
            len(establishments),
            len(keywords),
        )

    @staticmethod
    def _city(row: dict[str, Any], uf_by_state: dict[int, str]) -> City:
        state_id = int(row["state_id"])
        return City(
            id=int(row["id"]),
            state_id=state_id,
            name=str(row["name"]),
            uf=str(row.get("uf") or uf_by_state.get(state_id, "")).upper(),
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            slug=row.get("slug"),
            active=bool(row.get("active", True)),
            population=_optional_int(row.get("population")),
        )

    @staticmethod
    def _establishment(row: dict[str, Any]) -> Establishment:
        return Establishment(
            id=str(row["id"]),
            name=str(row["name"]),
            category_id=int(row["category_id"]),
            sub_category=str(row.get("sub_category") or ""),
            address=str(row.get("address") or ""),
            city_id=int(row["city_id"]),
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            rating=_optional_float(row.get("rating")),
            whatsapp=row.get("whatsapp"),
        )

    @staticmethod
    def _keyword(row: dict[str, Any]) -> KeywordEntry:
        weight = int(row["weight"])
        if weight <= 0:
            raise ValueError(f"keyword {row.get('keyword')!r} has non-positive weight {weight}")
        return KeywordEntry(intent_id=int(row["intent_id"]), keyword=str(row["keyword"]), weight=weight)


@lru_cache(maxsize=1)
def get_catalog() -> CatalogRepository:
    """Process-wide catalog, loaded on first use."""
    return JsonCatalogRepository(settings.catalog_dir)


__all__ = [
    "CatalogIntegrityError",
    "CatalogRepository",
    "JsonCatalogRepository",
    "StaticCatalog",
    "get_catalog",
    "unique_by_id",
]
