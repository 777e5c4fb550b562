from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


@dataclass(frozen=True)
class State:
    id: int
    name: str
    uf: str


@dataclass(frozen=True)
class City:
    id: int
    state_id: int
    name: str
    uf: str
    latitude: float
    longitude: float
    slug: str | None = None
    active: bool = True
    population: int | None = None


@dataclass(frozen=True)
class Establishment:
    id: str
    name: str
    category_id: int
    sub_category: str
    address: str
    city_id: int
    latitude: float
    longitude: float
    rating: float | None = None
    whatsapp: str | None = None


@dataclass(frozen=True)
class SearchIntent:
    id: int
    name: str
    active: bool = True
    # lower = more urgent; display/ops signal only, never used in scoring
    priority: int = 3


@dataclass(frozen=True)
class KeywordEntry:
    intent_id: int
    keyword: str
    weight: int


@dataclass(frozen=True)
class IntentTypeMapping:
    intent_id: int
    type_label: str
    weight: int


@dataclass(frozen=True)
class IntentScore:
    intent: SearchIntent
    score: int


@dataclass
class SuggestionResult:
    intents: list[SearchIntent] = field(default_factory=list)
    types: list[str] = field(default_factory=list)


@dataclass
class EstablishmentResults:
    items: list[Establishment]
    kind: Literal["establishments"] = "establishments"


@dataclass
class CityResults:
    items: list[City]
    kind: Literal["cities"] = "cities"


SearchResults = EstablishmentResults | CityResults
