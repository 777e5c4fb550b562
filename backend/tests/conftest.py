import os
import sys
from pathlib import Path

import pytest
import sentry_sdk
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Disable outbound Sentry calls during tests
sentry_sdk.init = lambda *args, **kwargs: None  # type: ignore[assignment]
os.environ["SENTRY_DSN"] = ""
os.environ["GEMINI_API_KEY"] = ""
test_data_dir = ROOT / "artifacts" / "test-data"
test_data_dir.mkdir(parents=True, exist_ok=True)
os.environ["DATA_DIR"] = str(test_data_dir)
# every session starts from an empty registration queue
(test_data_dir / "vidalocal.db").unlink(missing_ok=True)

from backend.app.cache import clear_all_caches  # noqa: E402
from backend.app.discovery import get_discovery  # noqa: E402
from backend.app.discovery.catalog import StaticCatalog  # noqa: E402
from backend.app.discovery.types import (  # noqa: E402
    City,
    Establishment,
    IntentTypeMapping,
    KeywordEntry,
    SearchIntent,
    State,
)
from backend.app.main import app  # noqa: E402
from backend.app.settings import settings  # noqa: E402


@pytest.fixture(scope="session")
def client() -> TestClient:
    return TestClient(app, base_url="http://api.testserver")


@pytest.fixture(autouse=True)
def reset_state():
    settings.RATE_LIMIT_ENABLED = False
    settings.GEMINI_API_KEY = None
    settings.SENTRY_DSN = None
    settings.MAPS_CHAT_BACKOFF_BASE_SECONDS = 0.0
    settings.MAPS_CHAT_JITTER_SECONDS = 0.0
    limiter = getattr(app.state, "rate_limiter", None)
    if limiter:
        limiter.reset()
    clear_all_caches()
    yield
    app.dependency_overrides.pop(get_discovery, None)
    clear_all_caches()


@pytest.fixture
def small_catalog() -> StaticCatalog:
    """Two Tocantins cities, a handful of businesses and a trimmed intent table."""
    return StaticCatalog(
        states=(State(id=1, name="Tocantins", uf="TO"), State(id=2, name="Goiás", uf="GO")),
        cities=(
            City(id=1, state_id=1, name="Gurupi", uf="TO", latitude=-11.7298, longitude=-49.0678),
            City(id=2, state_id=1, name="Palmas", uf="TO", latitude=-10.1844, longitude=-48.3336),
            City(id=4, state_id=2, name="Goiânia", uf="GO", latitude=-16.6869, longitude=-49.2648),
        ),
        establishments=(
            Establishment(
                id="e1",
                name="Espetinho do Adão B13",
                category_id=1,
                sub_category="Espetinho",
                address="Av. Goiás, 1234, Centro",
                city_id=1,
                latitude=-11.73,
                longitude=-49.068,
            ),
            Establishment(
                id="e2",
                name="Delicias da Polly",
                category_id=1,
                sub_category="Alimentação (restaurante, lanchonete, pizzaria)",
                address="Rua 7, 456, Setor Central",
                city_id=1,
                latitude=-11.7285,
                longitude=-49.0665,
            ),
            Establishment(
                id="e3",
                name="Mecânica do João",
                category_id=6,
                sub_category="Oficina / Centro Automotivo",
                address="Av. Maranhão, 789",
                city_id=1,
                latitude=-11.7315,
                longitude=-49.0695,
            ),
        ),
        intents=(
            SearchIntent(id=1, name="Alimentação", priority=1),
            SearchIntent(id=2, name="Automotivo/Emergência", priority=1),
            SearchIntent(id=3, name="Saúde/Médico", priority=1),
            SearchIntent(id=9, name="Desativado", active=False),
        ),
        keywords=(
            KeywordEntry(intent_id=1, keyword="pizza", weight=10),
            KeywordEntry(intent_id=1, keyword="fome", weight=10),
            KeywordEntry(intent_id=2, keyword="pneu", weight=10),
            KeywordEntry(intent_id=2, keyword="furou", weight=10),
            KeywordEntry(intent_id=3, keyword="farmácia", weight=10),
            KeywordEntry(intent_id=9, keyword="pizza", weight=50),
        ),
        intent_types=(
            IntentTypeMapping(intent_id=1, type_label="Alimentação", weight=10),
            IntentTypeMapping(intent_id=1, type_label="Delivery", weight=8),
            IntentTypeMapping(intent_id=2, type_label="Oficina", weight=10),
            IntentTypeMapping(intent_id=2, type_label="Guincho", weight=10),
            IntentTypeMapping(intent_id=3, type_label="Farmácia", weight=10),
        ),
    )
