from __future__ import annotations

from collections.abc import Iterable, Sequence

from .normalize import normalize
from .types import City, CityResults, Establishment, EstablishmentResults, SearchResults, State

FEATURED_DEFAULT_LIMIT = 4


class DirectorySearch:
    """
    Substring search over the local establishment directory.

    When no establishment matches, the query is retried against city names so the
    caller still gets something plausible; the result kind tells the two apart.
    """

    def __init__(
        self,
        establishments: Iterable[Establishment],
        cities: Iterable[City],
        states: Iterable[State] = (),
    ) -> None:
        self.establishments: tuple[Establishment, ...] = tuple(establishments)
        self.cities: tuple[City, ...] = tuple(cities)
        self.states: tuple[State, ...] = tuple(states)
        self._establishment_keys = [
            (est, normalize(est.name), normalize(est.sub_category)) for est in self.establishments
        ]
        self._city_keys = [
            (city, normalize(f"{city.name} {city.uf}"), normalize(city.name))
            for city in self.cities
        ]

    @classmethod
    def from_catalog(cls, catalog) -> DirectorySearch:
        return cls(
            catalog.lookup_establishments(), catalog.lookup_cities(), catalog.lookup_states()
        )

    def search(self, query: str, city_scope: int | None = None) -> SearchResults:
        if not query.strip():
            return EstablishmentResults(items=[])
        needle = normalize(query)
        matches = [
            est
            for est, name, sub_category in self._establishment_keys
            if (needle in name or needle in sub_category)
            and (city_scope is None or est.city_id == city_scope)
        ]
        if matches:
            return EstablishmentResults(items=matches)
        return CityResults(items=self._match_cities(needle))

    def search_cities(self, query: str) -> list[City]:
        if not query.strip():
            return []
        return self._match_cities(normalize(query))

    def _match_cities(self, needle: str) -> list[City]:
        return [
            city for city, full_name, name in self._city_keys if needle in full_name or needle in name
        ]

    def cities_by_state(self, uf: str | None = None) -> list[City]:
        if not uf or not uf.strip():
            return list(self.cities)
        wanted = uf.strip().upper()
        state = next((s for s in self.states if s.uf == wanted), None)
        if state is None:
            return []
        return [city for city in self.cities if city.state_id == state.id]

    def get_city(self, city_id: int) -> City | None:
        return next((city for city in self.cities if city.id == city_id), None)

    def featured(self, city_id: int | None = None) -> list[Establishment]:
        if city_id is not None:
            return [est for est in self.establishments if est.city_id == city_id]
        return list(self.establishments[:FEATURED_DEFAULT_LIMIT])


def build_local_context(establishments: Sequence[Establishment]) -> str:
    """Plain-text digest of local matches handed to the maps chat collaborator."""
    return "\n".join(
        f"- {est.name}: {est.address} ({est.sub_category})" for est in establishments
    )
