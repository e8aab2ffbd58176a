"""Visit accounting, detached from the redirect response.

Redirect handlers hand a ``Visit`` to the ``VisitQueue`` and return at once.
Worker tasks drain the queue through ``VisitRecorder``, which bumps the
counter first and only then spends time on the geolocation lookup.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from ..exceptions import ProviderFailure
from ..models import Link, LinkDetails
from ..observability import (
    GEO_LOOKUP_FAILURES_TOTAL,
    VISITS_DROPPED_TOTAL,
    VISITS_RECORDED_TOTAL,
    VISIT_QUEUE_DEPTH,
)
from ..schemas import GeoLocation
from ..store import LinkDetailsStore, LinkStore
from .geo import GeoProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Visit:
    link_id: int
    short_code: str
    ip: Optional[str] = None
    date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_link(cls, link: Link, ip: Optional[str] = None) -> "Visit":
        return cls(link_id=link.id, short_code=link.short_code, ip=ip)


class VisitRecorder:
    def __init__(
        self,
        links: LinkStore,
        details: LinkDetailsStore,
        geo: GeoProvider,
        geo_timeout: float = 3.0,
    ):
        self.links = links
        self.details = details
        self.geo = geo
        self.geo_timeout = geo_timeout

    async def record(self, visit: Visit) -> None:
        log_extra = {"short_code": visit.short_code}

        # 1. Count the visit; nothing below may hold this up
        try:
            counted = await self.links.increment_visit(visit.short_code)
        except Exception:
            logger.exception("Failed to increment visit count", extra=log_extra)
        else:
            if not counted:
                logger.warning("Visit for unknown short code dropped", extra=log_extra)
                return
            VISITS_RECORDED_TOTAL.inc()

        # 2. Enrich, best effort
        location = await self._locate(visit)

        # 3. Persist the visit record
        await self.details.add(
            LinkDetails(link_id=visit.link_id, ip=visit.ip, date=visit.date, **location.model_dump())
        )

    async def _locate(self, visit: Visit) -> GeoLocation:
        if not visit.ip:
            return GeoLocation()
        log_extra = {"short_code": visit.short_code}
        try:
            return await asyncio.wait_for(self.geo.lookup(visit.ip), timeout=self.geo_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Geo lookup for {visit.ip} timed out after {self.geo_timeout}s", extra=log_extra)
        except ProviderFailure as e:
            logger.warning(str(e), extra=log_extra)
        except Exception:
            logger.exception(f"Unexpected error during geo lookup for {visit.ip}", extra=log_extra)
        GEO_LOOKUP_FAILURES_TOTAL.inc()
        return GeoLocation()


class VisitQueue:
    def __init__(self, recorder: VisitRecorder, maxsize: int = 10000, workers: int = 4):
        self.recorder = recorder
        self.queue: asyncio.Queue[Visit] = asyncio.Queue(maxsize=maxsize)
        self.workers = workers
        self._tasks: List[asyncio.Task] = []
        self._accepting = True

    def start(self):
        self._accepting = True
        for n in range(self.workers):
            self._tasks.append(asyncio.create_task(self._worker(), name=f"visit-worker-{n}"))
        logger.info(f"Started {self.workers} visit workers")

    def submit(self, visit: Visit) -> bool:
        if not self._accepting:
            logger.warning("Visit queue closed, dropping visit", extra={"short_code": visit.short_code})
            VISITS_DROPPED_TOTAL.inc()
            return False
        try:
            self.queue.put_nowait(visit)
        except asyncio.QueueFull:
            logger.warning("Visit queue full, dropping visit", extra={"short_code": visit.short_code})
            VISITS_DROPPED_TOTAL.inc()
            return False
        VISIT_QUEUE_DEPTH.set(self.queue.qsize())
        return True

    async def join(self):
        await self.queue.join()

    async def close(self, timeout: float = 10.0):
        self._accepting = False
        try:
            await asyncio.wait_for(self.queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"Visit queue not drained after {timeout}s, {self.queue.qsize()} visits lost")

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def _worker(self):
        while True:
            visit = await self.queue.get()
            try:
                await self.recorder.record(visit)
            except Exception:
                logger.exception("Error recording visit", extra={"short_code": visit.short_code})
            finally:
                self.queue.task_done()
                VISIT_QUEUE_DEPTH.set(self.queue.qsize())
