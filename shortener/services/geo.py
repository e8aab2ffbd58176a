"""IP geolocation providers used to enrich visit records."""
import abc
import json
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from ..exceptions import ProviderFailure
from ..observability import GEO_CACHE_HITS, GEO_CACHE_MISSES
from ..redis import RedisClient, redis_client
from ..schemas import GeoLocation

logger = logging.getLogger(__name__)


class GeoProvider(abc.ABC):
    @abc.abstractmethod
    async def lookup(self, ip: str) -> GeoLocation:
        """Resolve ``ip`` to a location. Raises ProviderFailure."""

    async def close(self):
        pass


class IpstackGeoProvider(GeoProvider):
    """Client for the ipstack.com standard lookup endpoint."""

    def __init__(
        self,
        base_url: str,
        access_key: Optional[str] = None,
        timeout: float = 3.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.access_key = access_key
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def lookup(self, ip: str) -> GeoLocation:
        params = {"access_key": self.access_key} if self.access_key else {}
        try:
            response = await self.client.get(f"/{ip}", params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderFailure(f"Geo lookup failed for {ip}: {e}") from e

        if not isinstance(payload, dict):
            raise ProviderFailure(f"Unexpected geo payload for {ip}")

        # ipstack reports API errors with a 200 and success=false
        if payload.get("success") is False:
            error = payload.get("error")
            info = error.get("info", "unknown error") if isinstance(error, dict) else error or "unknown error"
            raise ProviderFailure(f"Geo lookup rejected for {ip}: {info}")

        location = payload.get("location") or {}
        try:
            return GeoLocation(
                continent=payload.get("continent_name"),
                country_code=payload.get("country_code"),
                country_name=payload.get("country_name"),
                region_code=payload.get("region_code"),
                region_name=payload.get("region_name"),
                city=payload.get("city"),
                latitude=payload.get("latitude"),
                longitude=payload.get("longitude"),
                country_emoji=location.get("country_flag_emoji"),
            )
        except ValidationError as e:
            raise ProviderFailure(f"Malformed geo payload for {ip}: {e}") from e

    async def close(self):
        await self.client.aclose()


class CachedGeoProvider(GeoProvider):
    """Caches successful lookups in Redis. A no-op wrapper when Redis is down."""

    def __init__(self, provider: GeoProvider, cache: RedisClient = redis_client, ttl: int = 86400):
        self.provider = provider
        self.cache = cache
        self.ttl = ttl

    async def lookup(self, ip: str) -> GeoLocation:
        key = f"geo:{ip}"
        cached = await self.cache.get(key)
        if cached:
            try:
                location = GeoLocation.model_validate_json(cached)
            except ValidationError:
                logger.warning(f"Discarding bad cache entry for {ip}")
            else:
                GEO_CACHE_HITS.inc()
                return location

        GEO_CACHE_MISSES.inc()
        location = await self.provider.lookup(ip)
        await self.cache.set(key, json.dumps(location.model_dump()), ex=self.ttl)
        return location

    async def close(self):
        await self.provider.close()
