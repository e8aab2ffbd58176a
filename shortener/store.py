"""Repository interfaces over links and visit records.

The service layer only talks to these classes. The SQLAlchemy versions open a
short-lived session per operation, so a single store instance can be shared by
concurrent requests and by the background visit workers.
"""
import abc
from typing import Callable, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import crud
from .models import Link, LinkDetails


class LinkStore(abc.ABC):
    @abc.abstractmethod
    async def insert(self, link: Link, code_for: Callable[[int], str]) -> int:
        """Persist ``link``, set its short code from the new id and return the id."""

    @abc.abstractmethod
    async def find_by_code(self, short_code: str) -> Optional[Link]:
        ...

    @abc.abstractmethod
    async def find_by_ids(self, link_ids: Iterable[int]) -> List[Link]:
        """Unknown ids are left out of the result."""

    @abc.abstractmethod
    async def find_by_owner(self, owner_id: str) -> List[Link]:
        ...

    @abc.abstractmethod
    async def set_owner(self, short_code: str, owner_id: str) -> bool:
        """Claim an unowned link. False if unknown or owned by someone else."""

    @abc.abstractmethod
    async def increment_visit(self, short_code: str) -> bool:
        """Atomically add one visit. False if the code is unknown."""


class LinkDetailsStore(abc.ABC):
    @abc.abstractmethod
    async def add(self, details: LinkDetails) -> LinkDetails:
        ...

    @abc.abstractmethod
    async def find_for_link(self, link_id: int, limit: int = 100) -> List[LinkDetails]:
        ...


class SQLAlchemyLinkStore(LinkStore):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def insert(self, link: Link, code_for: Callable[[int], str]) -> int:
        async with self.sessionmaker() as db:
            created = await crud.create_link(db, link, code_for)
            return created.id

    async def find_by_code(self, short_code: str) -> Optional[Link]:
        async with self.sessionmaker() as db:
            return await crud.get_link_by_short_code(db, short_code)

    async def find_by_ids(self, link_ids: Iterable[int]) -> List[Link]:
        async with self.sessionmaker() as db:
            return await crud.get_links_by_ids(db, link_ids)

    async def find_by_owner(self, owner_id: str) -> List[Link]:
        async with self.sessionmaker() as db:
            return await crud.get_links_by_owner(db, owner_id)

    async def set_owner(self, short_code: str, owner_id: str) -> bool:
        async with self.sessionmaker() as db:
            return await crud.set_link_owner(db, short_code, owner_id)

    async def increment_visit(self, short_code: str) -> bool:
        async with self.sessionmaker() as db:
            return await crud.update_link_visit_count(db, short_code)


class SQLAlchemyLinkDetailsStore(LinkDetailsStore):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def add(self, details: LinkDetails) -> LinkDetails:
        async with self.sessionmaker() as db:
            return await crud.create_link_details(db, details)

    async def find_for_link(self, link_id: int, limit: int = 100) -> List[LinkDetails]:
        async with self.sessionmaker() as db:
            return await crud.get_link_details(db, link_id, limit)
