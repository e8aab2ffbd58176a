import logging
from typing import Iterable, List, Optional

from pydantic import HttpUrl, TypeAdapter, ValidationError

from ..codes import ShortCodeGenerator
from ..exceptions import InvalidArgument, InvalidURL, Unauthorized
from ..models import Link
from ..store import LinkStore
from .visits import Visit, VisitQueue

logger = logging.getLogger(__name__)

_http_url = TypeAdapter(HttpUrl)


def validate_long_url(long_url) -> str:
    """Return ``long_url`` unchanged if it is an absolute http(s) URL."""
    if not isinstance(long_url, str) or not long_url.strip():
        raise InvalidURL("URL is required")
    # The parser forgives these, but the raw string is what gets redirected to
    if long_url != long_url.strip() or any(char in long_url for char in "\t\n\r"):
        raise InvalidURL(f"Invalid URL: {long_url!r}")
    try:
        _http_url.validate_python(long_url)
    except ValidationError as e:
        raise InvalidURL(f"Invalid URL: {long_url!r}") from e
    return long_url


class LinkService:
    def __init__(
        self,
        links: LinkStore,
        codes: Optional[ShortCodeGenerator] = None,
        visits: Optional[VisitQueue] = None,
    ):
        self.links = links
        self.codes = codes or ShortCodeGenerator()
        self.visits = visits

    async def create(self, long_url: Optional[str], owner_id: Optional[str] = None) -> Link:
        # Reject before touching storage
        long_url = validate_long_url(long_url)

        link = Link(long_url=long_url, owner_id=owner_id or None, visit_count=0)
        await self.links.insert(link, self.codes.encode)

        logger.info(f"Created short link {link.short_code} -> {long_url}", extra={"short_code": link.short_code})
        return link

    async def get_by_short_code(self, short_code: str) -> Optional[Link]:
        return await self.links.find_by_code(short_code)

    async def get_by_ids(self, short_codes: Iterable[str]) -> List[Link]:
        # Internal ids are never exposed, clients refer to links by short code.
        # Decode leniently so codes padded under another min length resolve,
        # then keep only links whose stored code was asked for.
        wanted = set()
        link_ids = set()
        for code in short_codes:
            try:
                link_ids.add(self.codes.decode(code, canonical=False))
            except InvalidArgument:
                continue
            wanted.add(code)
        if not link_ids:
            return []
        links = await self.links.find_by_ids(link_ids)
        return [link for link in links if link.short_code in wanted]

    async def get_all_for_owner(self, owner_id: str) -> List[Link]:
        if not owner_id:
            raise Unauthorized("Listing links requires an authenticated user")
        return await self.links.find_by_owner(owner_id)

    async def sync_ownership(self, short_codes: Iterable[str], owner_id: str) -> None:
        """Claim anonymously created links for ``owner_id``.

        Each code is handled on its own; codes that are unknown or already
        belong to another user are skipped, and a failure on one code does not
        undo or stop the others. Clients re-send the whole list on every login,
        so a skipped code is retried naturally.
        """
        if not owner_id:
            raise Unauthorized("Sync requires an authenticated user")

        claimed = 0
        for code in set(short_codes):
            try:
                if await self.links.set_owner(code, owner_id):
                    claimed += 1
            except Exception:
                logger.exception(f"Failed to sync owner for {code}", extra={"short_code": code})
        logger.info(f"Synced {claimed} links for user {owner_id}")

    def record_visit(self, link: Link, ip: Optional[str] = None) -> bool:
        """Queue a visit for background recording. Never blocks or raises."""
        if self.visits is None:
            logger.warning("No visit queue configured, visit not recorded", extra={"short_code": link.short_code})
            return False
        return self.visits.submit(Visit.for_link(link, ip))
