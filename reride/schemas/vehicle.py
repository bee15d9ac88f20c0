# reride/schemas/vehicle.py
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class VehicleCategory(str, Enum):
    FOUR_WHEELER = "Four Wheeler"
    TWO_WHEELER = "Two Wheeler"
    THREE_WHEELER = "Three Wheeler"
    FARM = "Farm Vehicle"
    COMMERCIAL = "Commercial Vehicle"
    CONSTRUCTION = "Construction Vehicle"


ListingStatus = Literal["active", "expired", "sold", "suspended", "draft"]
PublishStatus = Literal["published", "unpublished", "sold"]
CertificationStatus = Literal["none", "requested", "approved", "rejected"]


class CamelModel(BaseModel):
    """camelCase on the wire and in the cache, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VehicleRecord(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: int
    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    year: int = Field(ge=0)
    price: float = Field(ge=0)
    mileage: int = Field(default=0, ge=0)

    category: Optional[str] = None
    variant: Optional[str] = None
    fuel_type: Optional[str] = None        # Petrol | Diesel | CNG | Electric | Hybrid
    transmission: Optional[str] = None     # Manual | Automatic
    engine: Optional[str] = None
    color: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    location: Optional[str] = None

    images: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    description: str = ""
    documents: list[dict[str, Any]] = Field(default_factory=list)
    service_records: list[dict[str, Any]] = Field(default_factory=list)
    video_url: Optional[str] = None
    certification_status: Optional[CertificationStatus] = "none"

    # Lifecycle
    status: PublishStatus = "published"
    listing_status: Optional[ListingStatus] = None
    is_featured: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None
    days_active: Optional[int] = None

    # Denormalised seller info (populated by enrichment, not authoritative)
    seller_email: Optional[str] = None
    seller_name: Optional[str] = None
    seller_average_rating: Optional[float] = None
    seller_rating_count: Optional[int] = None
    seller_badges: list[dict[str, Any]] = Field(default_factory=list)

    # Engagement counters
    views: int = 0
    inquiries_count: int = 0
    phone_views: int = 0
    share_count: int = 0


class DeleteResult(CamelModel):
    success: bool
    id: int


class ListingStats(CamelModel):
    vehicle_id: int
    date: str
    views: int = 0
    unique_views: int = 0
    phone_views: int = 0
    chat_starts: int = 0
    shares: int = 0
    favorites: int = 0
