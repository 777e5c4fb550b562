"""Maps-grounded chat through Gemini.

The model answers the user's question with Google Maps and Google Search grounding,
centred on the selected city (or the device position). Rate-limit responses are
retried with jittered exponential backoff; any other failure, or an exhausted retry
budget, becomes a degraded reply instead of an error. Successful replies are kept in
a bounded cache keyed by city, question and location source.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from google import genai
from google.genai import types
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from .cache import BoundedCache
from .contracts import ChatReply, Coordinates, GroundingChunk, MapsSource, WebSource
from .discovery.geo import format_distance, haversine_km
from .discovery.types import City, Establishment
from .logging_config import get_logger
from .metrics import maps_chat_requests_total, maps_chat_retries_total
from .settings import settings

logger = get_logger(__name__)

RATE_LIMIT_MARKERS = ("429", "resource_exhausted", "quota exceeded")

FALLBACK_TEXT = "Não encontrei uma resposta para isso."
OVERLOADED_TEXT = (
    "Desculpe, o serviço está temporariamente sobrecarregado devido ao alto volume de "
    "buscas. Por favor, tente novamente em alguns instantes."
)
ERROR_TEXT = (
    "Desculpe, encontrei um erro ao processar sua solicitação. Por favor, tente novamente."
)

SYSTEM_PROMPT = """\
Você é VidaLocal, um assistente de guia urbano premium para a cidade de {city}.
Quando os usuários perguntarem sobre lugares, serviços ou empresas, você DEVE fornecer \
uma lista estruturada de opções relevantes.
Para cada empresa, inclua: 1. Nome, 2. Endereço Completo, 3. Número de Telefone \
(se disponível), e 4. Uma breve descrição.
Use listas Markdown para clareza. Sempre priorize a precisão e os dados em tempo real \
do Google Maps.\
"""

TAXONOMY_PROMPT = """
Tipos de estabelecimento reconhecidos pelo VidaLocal: {labels}.
Sempre tente enquadrar os estabelecimentos encontrados nesses tipos.\
"""

LOCAL_CONTEXT_PROMPT = """
Estabelecimentos cadastrados no VidaLocal que correspondem à busca (priorize-os \
quando relevantes):
{context}\
"""


class MapsChatUnavailable(RuntimeError):
    """Raised when the Gemini client cannot be used (e.g. missing API key)."""


def is_rate_limited(exc: BaseException) -> bool:
    if getattr(exc, "code", None) == 429:
        return True
    parts = [str(exc), str(getattr(exc, "status", "") or ""), str(getattr(exc, "message", "") or "")]
    text = " ".join(parts).lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


def cache_key(message: str, city: City, user_location: Coordinates | None) -> str:
    source = "geo" if user_location else "city"
    return f"{city.name}-{city.uf}:{message.strip().lower()}:{source}"


def build_system_instruction(
    city: City, local_context: str = "", type_labels: Sequence[str] = ()
) -> str:
    parts = [SYSTEM_PROMPT.format(city=f"{city.name}-{city.uf}")]
    if type_labels:
        parts.append(TAXONOMY_PROMPT.format(labels=", ".join(type_labels)))
    if local_context.strip():
        parts.append(LOCAL_CONTEXT_PROMPT.format(context=local_context.strip()))
    return "\n".join(parts)


def _log_retry(retry_state: RetryCallState) -> None:
    maps_chat_retries_total.inc()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "maps_chat_rate_limited",
        attempt=retry_state.attempt_number,
        max_attempts=settings.MAPS_CHAT_MAX_ATTEMPTS,
        retry_in_seconds=round(wait, 2),
    )


def _retrying() -> AsyncRetrying:
    return AsyncRetrying(
        retry=retry_if_exception(is_rate_limited),
        stop=stop_after_attempt(max(1, settings.MAPS_CHAT_MAX_ATTEMPTS)),
        wait=wait_exponential(multiplier=settings.MAPS_CHAT_BACKOFF_BASE_SECONDS, exp_base=2)
        + wait_random(0, settings.MAPS_CHAT_JITTER_SECONDS),
        before_sleep=_log_retry,
        reraise=True,
    )


def extract_grounding_chunks(response: Any) -> list[GroundingChunk]:
    """Pull maps/web citations out of a Gemini response; chunks with neither are dropped."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    raw_chunks = getattr(metadata, "grounding_chunks", None) or []

    chunks: list[GroundingChunk] = []
    for raw in raw_chunks:
        maps = getattr(raw, "maps", None)
        web = getattr(raw, "web", None)
        maps_source = None
        web_source = None
        if maps is not None and getattr(maps, "uri", None):
            location = getattr(maps, "location", None)
            maps_source = MapsSource(
                uri=maps.uri,
                title=getattr(maps, "title", None) or maps.uri,
                location=(
                    Coordinates(latitude=location.latitude, longitude=location.longitude)
                    if location is not None
                    else None
                ),
            )
        if web is not None and getattr(web, "uri", None):
            web_source = WebSource(uri=web.uri, title=getattr(web, "title", None) or web.uri)
        if maps_source or web_source:
            chunks.append(GroundingChunk(maps=maps_source, web=web_source))
    return chunks


def local_chunks(establishments: Iterable[Establishment]) -> list[GroundingChunk]:
    return [
        GroundingChunk(
            maps=MapsSource(
                uri=(
                    "https://www.google.com/maps/search/?api=1"
                    f"&query={est.latitude},{est.longitude}"
                ),
                title=est.name,
                location=Coordinates(latitude=est.latitude, longitude=est.longitude),
            )
        )
        for est in establishments
    ]


def merge_chunks(
    *groups: Iterable[GroundingChunk],
    user_location: Coordinates | None = None,
    limit: int = 20,
) -> list[GroundingChunk]:
    """Concatenate chunk groups, drop repeated URIs, cap the list and label distances."""
    seen: set[str] = set()
    merged: list[GroundingChunk] = []
    for group in groups:
        for chunk in group:
            uri = chunk.uri
            if uri is None or uri in seen:
                continue
            seen.add(uri)
            target = chunk.maps.location if chunk.maps else None
            if user_location is not None and target is not None:
                km = haversine_km(
                    user_location.latitude,
                    user_location.longitude,
                    target.latitude,
                    target.longitude,
                )
                chunk = chunk.model_copy(update={"distance": format_distance(km)})
            merged.append(chunk)
            if len(merged) >= limit:
                return merged
    return merged


class MapsChatService:
    def __init__(self, cache: BoundedCache[ChatReply] | None = None) -> None:
        self.cache: BoundedCache[ChatReply] = cache or BoundedCache(
            "maps_chat", max_size=settings.MAPS_CHAT_CACHE_SIZE
        )
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if not settings.maps_chat_configured:
            raise MapsChatUnavailable("GEMINI_API_KEY not configured")
        if self._client is None:
            self._client = genai.Client(api_key=settings.GEMINI_API_KEY)
        return self._client

    async def _generate(
        self, message: str, system_instruction: str, latitude: float, longitude: float
    ) -> Any:
        client = self._get_client()
        return await client.aio.models.generate_content(
            model=settings.MAPS_CHAT_MODEL,
            contents=message,
            config=types.GenerateContentConfig(
                system_instruction=system_instruction,
                tools=[
                    types.Tool(google_maps=types.GoogleMaps()),
                    types.Tool(google_search=types.GoogleSearch()),
                ],
                tool_config=types.ToolConfig(
                    retrieval_config=types.RetrievalConfig(
                        lat_lng=types.LatLng(latitude=latitude, longitude=longitude)
                    )
                ),
            ),
        )

    async def chat(
        self,
        message: str,
        city: City,
        user_location: Coordinates | None = None,
        local_context: str = "",
        type_labels: Sequence[str] = (),
    ) -> ChatReply:
        key = cache_key(message, city, user_location)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("maps_chat_cache_hit", city=city.name, uf=city.uf)
            maps_chat_requests_total.labels(outcome="cached").inc()
            return cached

        latitude = user_location.latitude if user_location else city.latitude
        longitude = user_location.longitude if user_location else city.longitude
        instruction = build_system_instruction(city, local_context, type_labels)

        try:
            async for attempt in _retrying():
                with attempt:
                    response = await self._generate(message, instruction, latitude, longitude)
        except MapsChatUnavailable as exc:
            logger.warning("maps_chat_unavailable", reason=str(exc))
            maps_chat_requests_total.labels(outcome="unavailable").inc()
            return ChatReply(text=ERROR_TEXT, degraded=True)
        except Exception as exc:
            rate_limited = is_rate_limited(exc)
            logger.exception("maps_chat_failed", rate_limited=rate_limited, city=city.name)
            maps_chat_requests_total.labels(
                outcome="rate_limited" if rate_limited else "error"
            ).inc()
            return ChatReply(text=OVERLOADED_TEXT if rate_limited else ERROR_TEXT, degraded=True)

        reply = ChatReply(
            text=getattr(response, "text", None) or FALLBACK_TEXT,
            grounding_chunks=extract_grounding_chunks(response),
        )
        self.cache.set(key, reply)
        maps_chat_requests_total.labels(outcome="ok").inc()
        return reply


maps_chat_service = MapsChatService()

__all__ = [
    "MapsChatService",
    "MapsChatUnavailable",
    "build_system_instruction",
    "cache_key",
    "extract_grounding_chunks",
    "is_rate_limited",
    "local_chunks",
    "maps_chat_service",
    "merge_chunks",
]
