# reride/schemas/saved_search.py
from datetime import datetime
from typing import Optional

from pydantic import Field

from reride.schemas.vehicle import CamelModel


class SearchFilters(CamelModel):
    make: Optional[str] = None
    model: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_year: Optional[int] = None
    max_year: Optional[int] = None
    category: Optional[str] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    location: Optional[str] = None   # matched against vehicle.city


class SavedSearch(CamelModel):
    id: int
    user_id: str
    name: str = ""
    filters: SearchFilters = Field(default_factory=SearchFilters)
    alerts_enabled: bool = True
    created_at: datetime


class PriceDrop(CamelModel):
    vehicle_id: int
    old_price: float
    new_price: float


class BuyerNotifications(CamelModel):
    price_drops: list[int] = Field(default_factory=list)
    new_matches: list[int] = Field(default_factory=list)


class BuyerActivity(CamelModel):
    user_id: str
    recently_viewed: list[int] = Field(default_factory=list)
    saved_searches: list[SavedSearch] = Field(default_factory=list)
    notifications: BuyerNotifications = Field(default_factory=BuyerNotifications)
