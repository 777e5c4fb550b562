from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from ...contracts import (
    CityOut,
    CitySearchResponse,
    EstablishmentOut,
    EstablishmentSearchResponse,
    SearchIntentOut,
    SearchResponse,
    StatusResponse,
    SuggestResponse,
)
from ...discovery import Discovery, get_discovery
from ...discovery.types import CityResults
from ...logging_config import bind_discovery_context, get_logger
from ...metrics import searches_total, suggestions_total
from ..types import CityScope, SearchText
from ..utils import parse_city_scope

router = APIRouter(tags=["search"])
logger = get_logger(__name__)


@router.get("/search/suggest", response_model=SuggestResponse)
def suggest(q: SearchText = "", discovery: Discovery = Depends(get_discovery)):
    result = discovery.suggester.suggest(q)
    suggestions_total.labels(matched="yes" if result.intents else "no").inc()
    return SuggestResponse(
        intents=[SearchIntentOut.model_validate(intent) for intent in result.intents],
        types=result.types,
    )


@router.get("/search", response_model=SearchResponse)
def search(
    q: SearchText = "",
    city_id: CityScope = None,
    discovery: Discovery = Depends(get_discovery),
):
    scope = parse_city_scope(city_id)
    results = discovery.directory.search(q, city_scope=scope)
    bind_discovery_context(city_id=scope, query_kind=results.kind)
    logger.info("search_served", count=len(results.items))
    searches_total.labels(kind=results.kind).inc()
    if isinstance(results, CityResults):
        return CitySearchResponse(items=[CityOut.model_validate(c) for c in results.items])
    return EstablishmentSearchResponse(
        items=[EstablishmentOut.model_validate(e) for e in results.items]
    )


@router.post("/search/log", response_model=StatusResponse)
def log_search(payload: dict[str, Any] | None = Body(default=None)):
    """Record a client-side search event; the body is free-form."""
    fields = {f"search_{key}": value for key, value in (payload or {}).items()}
    logger.info("search_logged", **fields)
    return StatusResponse(status="ok")
