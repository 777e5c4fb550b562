from __future__ import annotations

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = REPO_ROOT / ".env"
BUNDLED_CATALOG_DIR = Path(__file__).resolve().parent / "data"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE), env_file_encoding="utf-8", extra="ignore"
    )

    # whether to expose the debug routes and console logs
    DEBUG: bool = False
    DEV_ROUTES_ENABLED: bool = False

    # persistence directory (defaults to ~/.vidalocal-data)
    DATA_DIR: Path | None = None
    DATABASE_URL: str | None = None

    # reference catalogs (states, cities, establishments, intents); defaults to app/data
    CATALOG_DIR: Path | None = None

    # CORS allow origins (comma-separated). Default empty (no cross-origin).
    CORS_ALLOW_ORIGINS: str = ""

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 300  # per window per client
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Only trust X-Forwarded-For headers from these proxies (comma-separated IPs/CIDRs).
    # "*" trusts everyone; empty never trusts the header.
    TRUSTED_PROXIES: str = ""

    # Maps-grounded chat (Gemini)
    GEMINI_API_KEY: str | None = None
    MAPS_CHAT_MODEL: str = "gemini-2.5-flash"
    MAPS_CHAT_MAX_ATTEMPTS: int = 3
    MAPS_CHAT_BACKOFF_BASE_SECONDS: float = 2.0
    MAPS_CHAT_JITTER_SECONDS: float = 1.0
    MAPS_CHAT_CACHE_SIZE: int = 50
    MAPS_CHAT_MAX_CHUNKS: int = 20

    # Observability
    SENTRY_DSN: str | None = None
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_RELEASE: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2

    @property
    def allow_origins(self) -> list[str]:
        s = (self.CORS_ALLOW_ORIGINS or "").strip()
        if s == "*":
            return ["*"]
        if s == "":
            return []
        return [part.strip() for part in s.split(",") if part.strip()]

    @property
    def data_dir(self) -> Path:
        # Blank DATA_DIR values in `.env` become Path('.'), which would point at the
        # repository root; treat them as unset.
        def _materialize(path: Path) -> Path:
            path.mkdir(parents=True, exist_ok=True)
            return path

        raw_env = os.getenv("DATA_DIR")
        if raw_env is not None:
            trimmed = raw_env.strip()
            if trimmed:
                return _materialize(Path(trimmed).expanduser().resolve())
            return _materialize(Path.home() / ".vidalocal-data")

        if self.DATA_DIR is not None:
            candidate = Path(self.DATA_DIR).expanduser()
            candidate_str = str(candidate).strip()
            if candidate_str and candidate_str not in {".", "./", ".\\"}:
                return _materialize(candidate.resolve())
        return _materialize(Path.home() / ".vidalocal-data")

    @property
    def catalog_dir(self) -> Path:
        if self.CATALOG_DIR is not None and str(self.CATALOG_DIR).strip() not in {"", "."}:
            return Path(self.CATALOG_DIR).expanduser().resolve()
        return BUNDLED_CATALOG_DIR

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        default_path = self.data_dir / "vidalocal.db"
        return f"sqlite:///{default_path}"

    @property
    def async_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///"):
            return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def maps_chat_configured(self) -> bool:
        return bool((self.GEMINI_API_KEY or "").strip())


settings = Settings()
# make sure directory exists when imported
settings.data_dir.mkdir(parents=True, exist_ok=True)
