import warnings
from typing import Any

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .api.routes import chat as chat_routes
from .api.routes import cities as cities_routes
from .api.routes import establishments as establishments_routes
from .api.routes import search as search_routes
from .cache import clear_all_caches, get_all_cache_stats
from .health import health_checker
from .logging_config import SERVICE_NAME, SERVICE_VERSION, configure_structlog, get_logger
from .metrics import PrometheusMiddleware, get_metrics
from .settings import settings
from .utils import (
    add_cors,
    add_rate_limiting,
    add_request_id_tracing,
    add_security_headers,
)

# Suppress noisy multiprocessing semaphore warning on macOS dev runs
warnings.filterwarnings(
    "ignore",
    message=r"resource_tracker: There appear to be .* leaked semaphore objects",
    category=UserWarning,
)

# Configure structured logging (must be done before any logging calls)
configure_structlog(json_logs=not settings.DEBUG)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        release=settings.SENTRY_RELEASE or f"{SERVICE_NAME}@dev",
        integrations=[FastApiIntegration()],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

app = FastAPI(
    title="VidaLocal Discovery API",
    version=SERVICE_VERSION,
    description="Local business discovery: intent suggestions, directory search and maps chat",
)
add_cors(app)
add_security_headers(app)
add_request_id_tracing(app)
add_rate_limiting(app)
app.add_middleware(PrometheusMiddleware)

API_PREFIX = "/v1"
LEGACY_API_PREFIXES = ("/search", "/cities", "/states", "/establishments", "/chat")


@app.middleware("http")
async def legacy_prefix_upgrade(request: Request, call_next):  # type: ignore[override]
    path = request.scope.get("path", "")
    if not path:
        return await call_next(request)
    if (
        path.startswith(API_PREFIX)
        or path.startswith("/docs")
        or path.startswith("/openapi")
    ):
        return await call_next(request)
    if path.startswith("/health") or path.startswith("/metrics"):
        return await call_next(request)
    if not path.startswith(LEGACY_API_PREFIXES):
        return await call_next(request)

    new_path = f"{API_PREFIX}{path}"
    request.scope["path"] = new_path
    query = request.scope.get("query_string", b"")
    raw_path = new_path.encode()
    if query:
        raw_path = raw_path + b"?" + query
    request.scope["raw_path"] = raw_path
    request.state.legacy_prefix_applied = True
    response = await call_next(request)
    response.headers.setdefault(
        "X-API-Warning",
        "Legacy path automatically routed to /v1. Please update client requests.",
    )
    response.headers.setdefault("X-API-Version", "v1")
    return response


app.include_router(search_routes.router, prefix=API_PREFIX)
app.include_router(cities_routes.router, prefix=API_PREFIX)
app.include_router(establishments_routes.router, prefix=API_PREFIX)
app.include_router(chat_routes.router, prefix=API_PREFIX)

# Use structlog for structured logging
logger = get_logger(__name__)


def register_on_both(method: str, path: str, **kwargs):
    """Register endpoint on the bare path and under the versioned prefix."""

    def decorator(func):
        getattr(app, method)(path, **kwargs)(func)
        getattr(app, method)(f"{API_PREFIX}{path}", include_in_schema=False, **kwargs)(func)
        return func

    return decorator


@register_on_both("get", "/health")
async def health():
    """Return service health including catalog and store checks."""
    health_status = await health_checker.check_all()
    status_code = 200 if health_status["status"] == "healthy" else 503
    body = {
        "status": health_status["status"],
        "timestamp": health_status.get("timestamp"),
        "checks": _scrub_health_details(health_status.get("checks", {})),
    }
    if settings.DEBUG:
        body["details"] = health_status.get("checks", {})
    body["service"] = SERVICE_NAME
    body["version"] = SERVICE_VERSION

    return JSONResponse(content=body, status_code=status_code)


@register_on_both("get", "/metrics")
def metrics():
    """Expose Prometheus metrics."""
    return get_metrics()


def add_dev_routes(target: FastAPI) -> None:
    """Cache inspection routes, mounted only when DEBUG and DEV_ROUTES_ENABLED are set."""

    @target.post("/dev/cache/clear")
    def dev_clear_caches():
        clear_all_caches()
        logger.info("dev_caches_cleared")
        return {"ok": True, "cleared": True}

    @target.get("/dev/cache/stats")
    def dev_cache_stats():
        return get_all_cache_stats()


if settings.DEBUG and settings.DEV_ROUTES_ENABLED:
    add_dev_routes(app)


@app.get("/", include_in_schema=False)
def root_redirect():
    return RedirectResponse(url="/docs", status_code=307)


def _scrub_health_details(payload: dict[str, Any]) -> dict[str, Any]:
    """Remove sensitive error fields before returning health details."""

    def _scrub(value: Any) -> Any:
        if isinstance(value, dict):
            cleaned: dict[str, Any] = {}
            for key, inner in value.items():
                if key in {"error", "error_type", "traceback"}:
                    continue
                cleaned[key] = _scrub(inner)
            return cleaned
        if isinstance(value, list):
            return [_scrub(item) for item in value]
        return value

    return _scrub(payload)
