import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

from .config import get_settings
from .logging import configure_logging
from .observability.tracing import configure_tracing
from .health import router as health_router
from .routes.customers import router as customers_router
from .routes.providers import router as providers_router

logger = logging.getLogger(__name__)

REQUESTS = Counter(
    "provider_sync_http_requests_total",
    "HTTP requests",
    ["method", "path", "status"],
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(settings.log_level)
    configure_tracing("provider-sync", settings.otel_exporter_otlp_endpoint)
    logger.info("provider-sync.start", extra={"env": settings.env})
    yield
    logger.info("provider-sync.stop")


app = FastAPI(lifespan=lifespan, title="Provider Directory Sync", version="0.1.0")

settings = get_settings()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.app_url],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH"],
    allow_headers=["*"],
)


@app.middleware("http")
async def metrics_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    response: Response = await call_next(request)
    # Route template keeps label cardinality bounded
    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    try:
        REQUESTS.labels(request.method, path, str(response.status_code)).inc()
    except Exception:
        logger.warning("Failed to update metrics", exc_info=True)
    return response


@app.get("/metrics")
def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(health_router)
app.include_router(providers_router)
app.include_router(customers_router)
