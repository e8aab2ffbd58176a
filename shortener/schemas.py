from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class LinkCreate(BaseModel):
    # Validated by the service so a bad URL is a 400, not a 422
    URL: Optional[str] = None

class LinkResponse(BaseModel):
    longURL: str
    shortCode: str
    visited: int

class LinkStats(LinkResponse):
    createdAt: Optional[datetime] = None

class GeoLocation(BaseModel):
    continent: Optional[str] = None
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    region_code: Optional[str] = None
    region_name: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    country_emoji: Optional[str] = None
