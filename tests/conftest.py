import os

# Keep the module-level engine away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import asyncio
import pytest
from typing import AsyncGenerator, Optional
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shortener.codes import ShortCodeGenerator
from shortener.database import Base
from shortener.exceptions import ProviderFailure
from shortener.main import app
from shortener.schemas import GeoLocation
from shortener.services.geo import GeoProvider
from shortener.services.links import LinkService
from shortener.services.stats import StatsAggregator
from shortener.services.visits import VisitQueue, VisitRecorder
from shortener.store import SQLAlchemyLinkDetailsStore, SQLAlchemyLinkStore

SAMPLE_LOCATION = GeoLocation(
    continent="Europe",
    country_code="PT",
    country_name="Portugal",
    region_code="11",
    region_name="Lisbon",
    city="Lisbon",
    latitude=38.72,
    longitude=-9.13,
    country_emoji="🇵🇹",
)


class StubGeoProvider(GeoProvider):
    """Returns a fixed location, or raises ProviderFailure when ``fail`` is set.

    When ``gate`` is given, lookups wait on it first, which lets tests observe
    what happens while enrichment is still in flight.
    """

    def __init__(self, location: GeoLocation = SAMPLE_LOCATION, fail: bool = False):
        self.location = location
        self.fail = fail
        self.gate: Optional[asyncio.Event] = None
        self.calls = []

    async def lookup(self, ip: str) -> GeoLocation:
        self.calls.append(ip)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ProviderFailure(f"lookup failed for {ip}")
        return self.location


@pytest.fixture
async def engine(tmp_path):
    # A file database so every pooled connection sees the same data
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'shortener.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def link_store(sessionmaker):
    return SQLAlchemyLinkStore(sessionmaker)


@pytest.fixture
def details_store(sessionmaker):
    return SQLAlchemyLinkDetailsStore(sessionmaker)


@pytest.fixture
def codes():
    return ShortCodeGenerator(min_length=4)


@pytest.fixture
def geo_provider():
    return StubGeoProvider()


@pytest.fixture
def recorder(link_store, details_store, geo_provider):
    return VisitRecorder(link_store, details_store, geo_provider, geo_timeout=1.0)


@pytest.fixture
async def visit_queue(recorder) -> AsyncGenerator[VisitQueue, None]:
    queue = VisitQueue(recorder, maxsize=1000, workers=4)
    queue.start()
    yield queue
    await queue.close(timeout=5.0)


@pytest.fixture
def service(link_store, codes, visit_queue):
    return LinkService(link_store, codes, visit_queue)


@pytest.fixture
def stats(link_store, details_store):
    return StatsAggregator(link_store, details_store)


@pytest.fixture
async def client(service, stats) -> AsyncGenerator[AsyncClient, None]:
    # ASGITransport does not run the lifespan, so wire app state by hand
    app.state.link_service = service
    app.state.stats = stats
    async with ASGITransport(app=app) as transport:
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
