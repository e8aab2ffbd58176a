from typing import Optional
from fastapi import Depends, HTTPException, Request, status

from ..config import settings
from ..services.links import LinkService
from ..services.stats import StatsAggregator

def get_link_service(request: Request) -> LinkService:
    return request.app.state.link_service

def get_stats_aggregator(request: Request) -> StatsAggregator:
    return request.app.state.stats

def get_current_user_id(request: Request) -> Optional[str]:
    # Identity is established by the gateway in front of us
    user_id = request.headers.get(settings.USER_ID_HEADER)
    if user_id and user_id.strip():
        return user_id.strip()
    return None

def require_user_id(user_id: Optional[str] = Depends(get_current_user_id)) -> str:
    if not user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Authentication required")
    return user_id

def get_client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None
