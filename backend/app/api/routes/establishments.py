from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from ...contracts import EstablishmentOut, EstablishmentRegistration, RegistrationResponse
from ...discovery import Discovery, get_discovery
from ...storage import REGISTRATIONS
from ..types import CityScope
from ..utils import parse_city_scope

router = APIRouter(tags=["establishments"])
logger = logging.getLogger(__name__)


@router.get("/establishments/featured", response_model=list[EstablishmentOut])
def featured(city_id: CityScope = None, discovery: Discovery = Depends(get_discovery)):
    return discovery.directory.featured(parse_city_scope(city_id))


@router.post("/establishments/register", response_model=RegistrationResponse, status_code=201)
async def register_establishment(
    payload: EstablishmentRegistration, discovery: Discovery = Depends(get_discovery)
):
    if discovery.directory.get_city(payload.city_id) is None:
        raise HTTPException(422, f"Unknown city_id {payload.city_id}")
    try:
        record = await REGISTRATIONS.create(payload)
    except SQLAlchemyError as exc:
        logger.exception("Failed to store registration for %s", payload.name)
        raise HTTPException(503, "Registration temporarily unavailable") from exc
    return RegistrationResponse(
        status=record["status"],
        id=record["id"],
        message="Cadastro recebido. Vamos validar os dados antes de publicar.",
    )
