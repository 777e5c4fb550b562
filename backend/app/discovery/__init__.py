"""Intent detection, directory search and geo resolution over the reference catalogs."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from .catalog import CatalogRepository, get_catalog
from .directory import DirectorySearch, build_local_context
from .geo import InvalidCoordinateError, haversine_km, resolve_nearest
from .intents import Suggester
from .normalize import normalize


@dataclass(frozen=True)
class Discovery:
    catalog: CatalogRepository
    suggester: Suggester
    directory: DirectorySearch

    @classmethod
    def from_catalog(cls, catalog: CatalogRepository) -> Discovery:
        return cls(
            catalog=catalog,
            suggester=Suggester.from_catalog(catalog),
            directory=DirectorySearch.from_catalog(catalog),
        )


@lru_cache(maxsize=1)
def get_discovery() -> Discovery:
    return Discovery.from_catalog(get_catalog())


__all__ = [
    "Discovery",
    "DirectorySearch",
    "InvalidCoordinateError",
    "Suggester",
    "build_local_context",
    "get_discovery",
    "haversine_km",
    "normalize",
    "resolve_nearest",
]
