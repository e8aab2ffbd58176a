from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_
from .models import Link, LinkDetails
from typing import Callable, Iterable, Optional, List

# Link CRUD
async def create_link(db: AsyncSession, link: Link, code_for: Callable[[int], str]) -> Link:
    db.add(link)
    # Flush to get the autoincrement id, then derive the code in the same transaction
    await db.flush()
    link.short_code = code_for(link.id)
    await db.commit()
    await db.refresh(link)
    return link

async def get_link_by_short_code(db: AsyncSession, short_code: str) -> Optional[Link]:
    result = await db.execute(select(Link).where(Link.short_code == short_code))
    return result.scalar_one_or_none()

async def get_links_by_ids(db: AsyncSession, link_ids: Iterable[int]) -> List[Link]:
    link_ids = set(link_ids)
    if not link_ids:
        return []
    result = await db.execute(select(Link).where(Link.id.in_(link_ids)))
    return list(result.scalars().all())

async def get_links_by_owner(db: AsyncSession, owner_id: str) -> List[Link]:
    result = await db.execute(select(Link).where(Link.owner_id == owner_id).order_by(Link.id))
    return list(result.scalars().all())

async def set_link_owner(db: AsyncSession, short_code: str, owner_id: str) -> bool:
    # Compare-and-set: never take a link away from another owner
    result = await db.execute(
        update(Link)
        .where(
            Link.short_code == short_code,
            or_(Link.owner_id.is_(None), Link.owner_id == owner_id),
        )
        .values(owner_id=owner_id)
    )
    await db.commit()
    return result.rowcount > 0

async def update_link_visit_count(db: AsyncSession, short_code: str) -> bool:
    result = await db.execute(
        update(Link)
        .where(Link.short_code == short_code)
        .values(visit_count=Link.visit_count + 1)
    )
    await db.commit()
    return result.rowcount > 0

# LinkDetails CRUD
async def create_link_details(db: AsyncSession, details: LinkDetails) -> LinkDetails:
    db.add(details)
    await db.commit()
    return details

async def get_link_details(db: AsyncSession, link_id: int, limit: int = 100) -> List[LinkDetails]:
    result = await db.execute(
        select(LinkDetails)
        .where(LinkDetails.link_id == link_id)
        .order_by(LinkDetails.date.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
