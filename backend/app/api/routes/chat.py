from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ...contracts import ChatReply, ChatRequest
from ...discovery import Discovery, build_local_context, get_discovery
from ...discovery.types import EstablishmentResults
from ...logging_config import bind_discovery_context
from ...maps_chat import local_chunks, maps_chat_service, merge_chunks
from ...settings import settings

router = APIRouter(tags=["chat"])


@router.post("/chat", response_model=ChatReply)
async def chat(req: ChatRequest, discovery: Discovery = Depends(get_discovery)):
    city = discovery.directory.get_city(req.city_id)
    if city is None:
        raise HTTPException(404, "City not found")
    bind_discovery_context(city_id=city.id, uf=city.uf)

    # local directory hits are offered to the model and shown first
    results = discovery.directory.search(req.message, city_scope=city.id)
    local = list(results.items) if isinstance(results, EstablishmentResults) else []
    type_labels = list(
        dict.fromkeys(row.type_label for row in discovery.catalog.lookup_intent_types())
    )

    reply = await maps_chat_service.chat(
        req.message,
        city,
        user_location=req.user_location,
        local_context=build_local_context(local),
        type_labels=type_labels,
    )
    chunks = merge_chunks(
        local_chunks(local),
        reply.grounding_chunks,
        user_location=req.user_location,
        limit=settings.MAPS_CHAT_MAX_CHUNKS,
    )
    return reply.model_copy(update={"grounding_chunks": chunks})
