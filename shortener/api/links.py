from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from typing import List, Optional

from ..exceptions import InvalidURL, NotFound, Unauthorized
from ..models import Link
from ..schemas import LinkCreate, LinkResponse, LinkStats
from ..services.links import LinkService
from ..services.stats import StatsAggregator
from .deps import get_current_user_id, get_link_service, get_stats_aggregator, require_user_id

router = APIRouter()

def to_response(link: Link) -> LinkResponse:
    return LinkResponse(
        longURL=link.long_url,
        shortCode=link.short_code,
        visited=link.visit_count,
    )

@router.post("/", response_model=LinkResponse)
async def create_link(
    link_in: Optional[LinkCreate] = Body(None),
    user_id: Optional[str] = Depends(get_current_user_id),
    service: LinkService = Depends(get_link_service),
):
    try:
        link = await service.create(link_in.URL if link_in else None, owner_id=user_id)
    except InvalidURL:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid URL")
    return to_response(link)

@router.get("/links-by-id", response_model=List[LinkResponse])
async def get_links_by_id(
    ids: List[str] = Query(default=[]),
    service: LinkService = Depends(get_link_service),
):
    links = await service.get_by_ids(ids)
    return [to_response(link) for link in links]

@router.get("/links", response_model=List[LinkResponse])
async def get_user_links(
    user_id: str = Depends(require_user_id),
    service: LinkService = Depends(get_link_service),
):
    try:
        links = await service.get_all_for_owner(user_id)
    except Unauthorized:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Authentication required")
    return [to_response(link) for link in links]

@router.put("/sync")
async def sync_links(
    ids: List[str] = Body(default=[]),
    user_id: str = Depends(require_user_id),
    service: LinkService = Depends(get_link_service),
):
    try:
        await service.sync_ownership(ids, user_id)
    except Unauthorized:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Authentication required")
    return Response(status_code=status.HTTP_200_OK)

@router.get("/stats/{short_code}", response_model=LinkStats)
async def get_link_stats(
    short_code: str,
    stats: StatsAggregator = Depends(get_stats_aggregator),
):
    try:
        return await stats.stats_for(short_code)
    except NotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Link not found")
