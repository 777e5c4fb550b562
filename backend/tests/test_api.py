"""HTTP contract of the discovery API."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from backend.app.discovery import Discovery, get_discovery
from backend.app.discovery.catalog import StaticCatalog
from backend.app.main import app
from backend.app.maps_chat import ERROR_TEXT, maps_chat_service
from backend.app.settings import settings
from backend.app.storage import REGISTRATIONS
from sqlalchemy.exc import SQLAlchemyError


def _use_catalog(catalog) -> None:
    discovery = Discovery.from_catalog(catalog)
    app.dependency_overrides[get_discovery] = lambda: discovery


class TestSearch:
    def test_suggest(self, client):
        resp = client.get("/v1/search/suggest", params={"q": "pneu furou"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["intents"][0]["name"] == "Automotivo/Emergência"
        assert body["types"][:3] == ["Oficina", "Auto Peças", "Guincho"]

    def test_suggest_blank(self, client):
        resp = client.get("/v1/search/suggest", params={"q": "   "})
        assert resp.json() == {"intents": [], "types": []}

    def test_search_establishments(self, client):
        resp = client.get("/v1/search", params={"q": "pizzaria"})
        body = resp.json()
        assert body["kind"] == "establishments"
        assert [item["id"] for item in body["items"]] == ["e2"]

    def test_search_falls_back_to_cities(self, client):
        resp = client.get("/v1/search", params={"q": "Palmas"})
        body = resp.json()
        assert body["kind"] == "cities"
        assert body["items"][0]["id"] == 2
        assert body["items"][0]["uf"] == "TO"

    def test_search_blank(self, client):
        resp = client.get("/v1/search")
        assert resp.json() == {"kind": "establishments", "items": []}

    def test_search_city_scope(self, client):
        resp = client.get("/v1/search", params={"q": "farmacia", "city_id": 2})
        assert resp.json()["kind"] == "cities"

    def test_search_blank_city_scope(self, client):
        resp = client.get("/v1/search?q=pizzaria&city_id=")
        assert resp.status_code == 200
        body = resp.json()
        assert body["kind"] == "establishments"
        assert [item["id"] for item in body["items"]] == ["e2"]

    def test_search_non_numeric_city_scope(self, client):
        assert client.get("/v1/search", params={"q": "pizza", "city_id": "abc"}).status_code == 422

    def test_search_log(self, client):
        resp = client.post("/v1/search/log", json={"q": "pizza", "city_id": 1, "results": 2})
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_legacy_prefix_upgraded(self, client):
        resp = client.get("/search/suggest", params={"q": "pizza"})
        assert resp.status_code == 200
        assert resp.headers["X-API-Version"] == "v1"
        assert "X-API-Warning" in resp.headers
        assert resp.json()["intents"][0]["name"] == "Alimentação"


class TestCatalogEndpoints:
    def test_states(self, client):
        resp = client.get("/v1/states")
        assert resp.status_code == 200
        assert {state["uf"] for state in resp.json()} == {"TO", "GO", "SP", "RJ", "DF"}

    def test_cities_by_state(self, client):
        names = [city["name"] for city in client.get("/v1/cities", params={"state_uf": "TO"}).json()]
        assert "Gurupi" in names and "Palmas" in names
        assert "Goiânia" not in names
        assert client.get("/v1/cities", params={"state_uf": "XX"}).json() == []

    @pytest.mark.parametrize("uf", ["TOC", "X", "ZZ"])
    def test_cities_unknown_uf_is_empty(self, client, uf):
        resp = client.get("/v1/cities", params={"state_uf": uf})
        assert resp.status_code == 200
        assert resp.json() == []

    @pytest.mark.parametrize("uf", ["", "  "])
    def test_cities_blank_uf_lists_all(self, client, uf):
        everything = client.get("/v1/cities").json()
        resp = client.get("/v1/cities", params={"state_uf": uf})
        assert resp.status_code == 200
        assert resp.json() == everything

    def test_all_cities_unique(self, client):
        ids = [city["id"] for city in client.get("/v1/cities").json()]
        assert len(ids) == len(set(ids))

    def test_city_search(self, client):
        resp = client.get("/v1/cities/search", params={"q": "goiania"})
        assert [city["id"] for city in resp.json()] == [4]

    def test_resolve_by_geo(self, client):
        resp = client.post("/v1/cities/resolve-by-geo", json={"lat": -11.73, "lng": -49.07})
        assert resp.status_code == 200
        assert resp.json()["name"] == "Gurupi"

    @pytest.mark.parametrize(
        "payload",
        [{"lat": 95, "lng": 0}, {"lat": 0, "lng": 200}, {"lat": "north", "lng": 0}, {"lat": 1}],
    )
    def test_resolve_by_geo_invalid(self, client, payload):
        assert client.post("/v1/cities/resolve-by-geo", json=payload).status_code == 422

    def test_resolve_by_geo_empty_catalog(self, client):
        _use_catalog(StaticCatalog())
        resp = client.post("/v1/cities/resolve-by-geo", json={"lat": -11.73, "lng": -49.07})
        assert resp.status_code == 503


class TestEstablishments:
    def test_featured_default(self, client):
        assert len(client.get("/v1/establishments/featured").json()) == 4

    def test_featured_for_city(self, client):
        items = client.get("/v1/establishments/featured", params={"city_id": 1}).json()
        assert len(items) == 10
        assert client.get("/v1/establishments/featured", params={"city_id": 2}).json() == []

    def test_featured_blank_city(self, client):
        resp = client.get("/v1/establishments/featured?city_id=")
        assert resp.status_code == 200
        assert len(resp.json()) == 4

    def test_register(self, client):
        payload = {
            "name": "  Borracharia   Central ",
            "categoryId": 6,
            "subCategory": "Borracharia",
            "address": "Av. Pará, 100",
            "cityId": 1,
            "whatsapp": "(63) 99999-0000",
            "website": "borracharia.example.com",
            "userId": "user-42",
        }
        resp = client.post("/v1/establishments/register", json=payload)
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "pending"
        assert body["id"]

        stored = asyncio.run(REGISTRATIONS.get(body["id"]))
        assert stored["name"] == "Borracharia Central"
        assert stored["whatsapp"] == "63999990000"
        assert stored["website"] == "https://borracharia.example.com"
        assert stored["user_id"] == "user-42"

        pending = asyncio.run(REGISTRATIONS.list_registrations(status="pending", city_id=1))
        assert body["id"] in {row["id"] for row in pending}

    def test_register_unknown_city(self, client):
        payload = {
            "name": "Loja",
            "category_id": 1,
            "sub_category": "Varejo",
            "address": "Rua 1",
            "city_id": 999,
        }
        assert client.post("/v1/establishments/register", json=payload).status_code == 422

    def test_register_invalid_payload(self, client):
        payload = {"name": "   ", "categoryId": 1, "subCategory": "Varejo", "address": "Rua 1", "cityId": 1}
        assert client.post("/v1/establishments/register", json=payload).status_code == 422

    def test_register_store_failure(self, client, monkeypatch):
        async def broken(registration):  # noqa: ARG001
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(REGISTRATIONS, "create", broken)
        payload = {"name": "Loja", "categoryId": 1, "subCategory": "Varejo", "address": "Rua 1", "cityId": 1}
        assert client.post("/v1/establishments/register", json=payload).status_code == 503


class TestChat:
    def test_unconfigured_chat_is_degraded_with_local_results(self, client):
        resp = client.post(
            "/v1/chat",
            json={
                "message": "pizzaria",
                "city_id": 1,
                "user_location": {"latitude": -11.7298, "longitude": -49.0678},
            },
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["role"] == "model"
        assert body["degraded"] is True
        assert body["text"] == ERROR_TEXT
        assert [chunk["maps"]["title"] for chunk in body["grounding_chunks"]] == ["Delicias da Polly"]
        assert body["grounding_chunks"][0]["distance"].endswith(" m")

    def test_chat_merges_local_and_model_chunks(self, client, monkeypatch):
        settings.GEMINI_API_KEY = "test-key"
        seen = {}

        async def fake_generate(message, system_instruction, latitude, longitude):
            seen["instruction"] = system_instruction
            maps = SimpleNamespace(
                uri="https://maps.google.com/?cid=77",
                title="Pizzaria do Centro",
                location=SimpleNamespace(latitude=-11.74, longitude=-49.08),
            )
            return SimpleNamespace(
                text="Encontrei estas pizzarias.",
                candidates=[
                    SimpleNamespace(
                        grounding_metadata=SimpleNamespace(
                            grounding_chunks=[SimpleNamespace(maps=maps, web=None)]
                        )
                    )
                ],
            )

        monkeypatch.setattr(maps_chat_service, "_generate", fake_generate)
        resp = client.post("/v1/chat", json={"message": "pizzaria", "city_id": 1})
        body = resp.json()
        assert body["degraded"] is False
        assert body["text"] == "Encontrei estas pizzarias."
        titles = [chunk["maps"]["title"] for chunk in body["grounding_chunks"]]
        assert titles == ["Delicias da Polly", "Pizzaria do Centro"]
        assert all(chunk["distance"] is None for chunk in body["grounding_chunks"])
        assert "Delicias da Polly" in seen["instruction"]
        assert "Gurupi-TO" in seen["instruction"]

    def test_chat_unknown_city(self, client):
        resp = client.post("/v1/chat", json={"message": "pizza", "city_id": 999})
        assert resp.status_code == 404

    def test_chat_blank_message(self, client):
        resp = client.post("/v1/chat", json={"message": "   ", "city_id": 1})
        assert resp.status_code == 422
