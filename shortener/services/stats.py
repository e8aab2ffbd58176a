from typing import List

from ..exceptions import NotFound
from ..models import Link, LinkDetails
from ..schemas import LinkStats
from ..store import LinkDetailsStore, LinkStore


class StatsAggregator:
    def __init__(self, links: LinkStore, details: LinkDetailsStore):
        self.links = links
        self.details = details

    async def _get_link(self, short_code: str) -> Link:
        link = await self.links.find_by_code(short_code)
        if link is None:
            raise NotFound(f"Unknown short code: {short_code}")
        return link

    async def stats_for(self, short_code: str) -> LinkStats:
        link = await self._get_link(short_code)
        return LinkStats(
            longURL=link.long_url,
            shortCode=link.short_code,
            visited=link.visit_count,
            createdAt=link.created_at,
        )

    async def visits_for(self, short_code: str, limit: int = 100) -> List[LinkDetails]:
        """Per-visit geo records, newest first."""
        link = await self._get_link(short_code)
        return await self.details.find_for_link(link.id, limit)
