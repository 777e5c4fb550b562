from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ...contracts import CityOut, GeoPoint, StateOut
from ...discovery import Discovery, get_discovery
from ...discovery.geo import EmptyCatalogError, InvalidCoordinateError, resolve_nearest
from ...logging_config import bind_discovery_context, get_logger
from ..types import SearchText, StateUf

router = APIRouter(tags=["cities"])
logger = get_logger(__name__)


@router.get("/states", response_model=list[StateOut])
def list_states(discovery: Discovery = Depends(get_discovery)):
    return list(discovery.directory.states)


@router.get("/cities", response_model=list[CityOut])
def list_cities(state_uf: StateUf = None, discovery: Discovery = Depends(get_discovery)):
    return discovery.directory.cities_by_state(state_uf)


@router.get("/cities/search", response_model=list[CityOut])
def search_cities(q: SearchText = "", discovery: Discovery = Depends(get_discovery)):
    return discovery.directory.search_cities(q)


@router.post("/cities/resolve-by-geo", response_model=CityOut)
def resolve_by_geo(point: GeoPoint, discovery: Discovery = Depends(get_discovery)):
    try:
        city = resolve_nearest(discovery.directory.cities, point.lat, point.lng)
    except InvalidCoordinateError as exc:
        raise HTTPException(422, str(exc)) from exc
    except EmptyCatalogError as exc:
        logger.error("geo_resolution_failed", reason=str(exc))
        raise HTTPException(503, "City catalog unavailable") from exc
    bind_discovery_context(city_id=city.id, uf=city.uf)
    logger.info("city_resolved", city=city.name)
    return city
