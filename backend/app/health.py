"""Health check module with dependency verification."""

from __future__ import annotations

import time
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from .db.core import ping
from .discovery import get_discovery
from .discovery.catalog import CatalogIntegrityError
from .settings import settings


def _is_configured(value: str | None) -> bool:
    return bool(value and value.strip())


class HealthChecker:
    """Health checker for the catalog, the registration store and optional integrations."""

    def __init__(self) -> None:
        self._check_cache: dict[str, tuple[dict[str, Any], float]] = {}
        self._cache_ttl = 30.0

    async def check_all(self) -> dict[str, Any]:
        checks = {
            "catalog": self._check_catalog(),
            "database": await self._check_database(),
            "maps_chat": (
                {"status": "ok", "model": settings.MAPS_CHAT_MODEL}
                if settings.maps_chat_configured
                else {"status": "disabled"}
            ),
            "sentry": (
                {"status": "ok"} if _is_configured(settings.SENTRY_DSN) else {"status": "disabled"}
            ),
        }
        all_ok = all(check.get("status") in {"ok", "disabled"} for check in checks.values())
        return {
            "status": "healthy" if all_ok else "degraded",
            "timestamp": time.time(),
            "checks": checks,
        }

    def _check_catalog(self) -> dict[str, Any]:
        try:
            discovery = get_discovery()
        except CatalogIntegrityError as exc:
            return {"status": "error", "error": str(exc), "error_type": type(exc).__name__}
        catalog = discovery.catalog
        return {
            "status": "ok",
            "states": len(catalog.lookup_states()),
            "cities": len(catalog.lookup_cities()),
            "establishments": len(catalog.lookup_establishments()),
            "keywords": len(catalog.lookup_keywords()),
        }

    async def _check_database(self) -> dict[str, Any]:
        cached = self._get_cached_check("database")
        if cached:
            return cached
        try:
            await ping()
        except (SQLAlchemyError, OSError) as exc:
            result = {"status": "error", "error": str(exc), "error_type": type(exc).__name__}
        else:
            result = {"status": "ok"}
        self._cache_check("database", result)
        return result

    def _get_cached_check(self, key: str) -> dict[str, Any] | None:
        entry = self._check_cache.get(key)
        if entry is None:
            return None
        result, stored_at = entry
        if time.time() - stored_at > self._cache_ttl:
            del self._check_cache[key]
            return None
        return result

    def _cache_check(self, key: str, result: dict[str, Any]) -> None:
        self._check_cache[key] = (result, time.time())

    def clear_cache(self) -> None:
        self._check_cache.clear()


health_checker = HealthChecker()
