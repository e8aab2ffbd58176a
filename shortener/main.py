from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from typing import Optional

from .config import settings
from .database import AsyncSessionLocal, create_tables, engine
from .api import links
from .api.deps import get_client_ip, get_link_service
from .codes import ShortCodeGenerator
from .redis import redis_client
from .services.geo import CachedGeoProvider, IpstackGeoProvider
from .services.links import LinkService
from .services.stats import StatsAggregator
from .services.visits import VisitQueue, VisitRecorder
from .store import SQLAlchemyLinkDetailsStore, SQLAlchemyLinkStore
from .observability import PrometheusMiddleware, metrics_endpoint, REDIRECT_TOTAL, REDIRECT_404_TOTAL
from .logging_config import setup_logging

setup_logging(settings.LOG_LEVEL)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    await redis_client.connect()
    await create_tables()

    link_store = SQLAlchemyLinkStore(AsyncSessionLocal)
    details_store = SQLAlchemyLinkDetailsStore(AsyncSessionLocal)
    geo_provider = CachedGeoProvider(
        IpstackGeoProvider(settings.GEO_API_URL, settings.GEO_API_KEY, settings.GEO_TIMEOUT_SECONDS),
        ttl=settings.GEO_CACHE_TTL_SECONDS,
    )
    recorder = VisitRecorder(link_store, details_store, geo_provider, settings.GEO_TIMEOUT_SECONDS)
    visits = VisitQueue(recorder, maxsize=settings.VISIT_QUEUE_SIZE, workers=settings.VISIT_WORKERS)
    visits.start()

    app.state.link_service = LinkService(link_store, ShortCodeGenerator(settings.CODE_MIN_LENGTH), visits)
    app.state.stats = StatsAggregator(link_store, details_store)
    yield
    # Shutdown logic: drain visits before the engine goes away
    await visits.close(settings.VISIT_DRAIN_TIMEOUT_SECONDS)
    await geo_provider.close()
    await redis_client.close()
    await engine.dispose()

app = FastAPI(
    title="URL Shortener",
    description="Shortens URLs, redirects visitors and tracks visits",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(PrometheusMiddleware)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Malformed requests are a plain 400, like an invalid URL
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "Invalid request"})

app.add_route("/metrics", metrics_endpoint)

@app.get("/health")
async def health():
    return {"status": "ok"}

app.include_router(links.router)

# Registered last so fixed paths win over the catch-all
@app.get("/{short_code}")
async def redirect_to_url(
    short_code: str,
    client_ip: Optional[str] = Depends(get_client_ip),
    service: LinkService = Depends(get_link_service),
):
    link = await service.get_by_short_code(short_code)
    if not link:
        REDIRECT_404_TOTAL.inc()
        raise HTTPException(status_code=404, detail="Link not found")

    # Fire and forget: the count catches up in the background
    service.record_visit(link, client_ip)
    REDIRECT_TOTAL.inc()
    return RedirectResponse(url=link.long_url, status_code=status.HTTP_302_FOUND)
