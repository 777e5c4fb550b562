from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .validators import normalize_display_name, normalize_note, normalize_phone, normalize_url


# --- Reference catalogs ---
class StateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    uf: str


class CityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    state_id: int
    name: str
    uf: str
    slug: str | None = None
    active: bool = True
    latitude: float
    longitude: float
    population: int | None = None


class EstablishmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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


class SearchIntentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    active: bool = True
    priority: int


# --- Search ---
class SuggestResponse(BaseModel):
    intents: list[SearchIntentOut] = Field(default_factory=list, max_length=3)
    types: list[str] = Field(default_factory=list, max_length=8)


class EstablishmentSearchResponse(BaseModel):
    kind: Literal["establishments"] = "establishments"
    items: list[EstablishmentOut] = Field(default_factory=list)


class CitySearchResponse(BaseModel):
    kind: Literal["cities"] = "cities"
    items: list[CityOut] = Field(default_factory=list)


SearchResponse = Annotated[
    EstablishmentSearchResponse | CitySearchResponse, Field(discriminator="kind")
]


class StatusResponse(BaseModel):
    status: str
    message: str | None = None


# --- Geo ---
class GeoPoint(BaseModel):
    lat: float
    lng: float


class Coordinates(BaseModel):
    latitude: float
    longitude: float


# --- Maps chat ---
class MapsSource(BaseModel):
    uri: str
    title: str
    location: Coordinates | None = None


class WebSource(BaseModel):
    uri: str
    title: str


class GroundingChunk(BaseModel):
    maps: MapsSource | None = None
    web: WebSource | None = None
    distance: str | None = None

    @property
    def uri(self) -> str | None:
        if self.maps:
            return self.maps.uri
        if self.web:
            return self.web.uri
        return None


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=1000)
    city_id: int
    user_location: Coordinates | None = None

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("message cannot be blank")
        return cleaned


class ChatReply(BaseModel):
    role: Literal["model"] = "model"
    text: str
    grounding_chunks: list[GroundingChunk] = Field(default_factory=list)
    degraded: bool = False


# --- Establishment registration ---
class EstablishmentRegistration(BaseModel):
    """Registration form payload; accepts the front end's camelCase keys too."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    category_id: int = Field(alias="categoryId", ge=1)
    sub_category: str = Field(alias="subCategory")
    address: str
    city_id: int = Field(alias="cityId")
    phone: str | None = None
    whatsapp: str | None = None
    website: str | None = None
    hours: str | None = None
    description: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    maps_link: str | None = Field(default=None, alias="mapsLink")
    user_id: str | None = Field(default=None, alias="userId", max_length=128)

    @field_validator("name", "sub_category", "address")
    @classmethod
    def _required_text(cls, value: str, info) -> str:
        return normalize_display_name(value, field=info.field_name)

    @field_validator("phone", "whatsapp")
    @classmethod
    def _phone(cls, value: str | None, info) -> str | None:
        return normalize_phone(value, field=info.field_name)

    @field_validator("website", "maps_link")
    @classmethod
    def _url(cls, value: str | None, info) -> str | None:
        return normalize_url(value, field=info.field_name)

    @field_validator("hours", "description")
    @classmethod
    def _note(cls, value: str | None, info) -> str | None:
        return normalize_note(value, field=info.field_name)


class RegistrationResponse(StatusResponse):
    id: str
