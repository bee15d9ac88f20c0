# reride/services/listing_service.py
"""
Listing lifecycle and seller-side analytics.
Expiry is computed from createdAt (60 days, warning in the last 7).
All record helpers are pure: they return new VehicleRecords and never mutate input.
Engagement counters (phone views, shares) persist through DataService accessors.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from reride.schemas.vehicle import ListingStats, VehicleRecord
from reride.services.data_service import DataService, get_data_service
from reride.utils.logger import get_logger

logger = get_logger(__name__)

LISTING_EXPIRY_DAYS = 60
LISTING_WARNING_DAYS = 7
BEST_PRICE_RATIO = 0.9
SIMILAR_YEAR_WINDOW = 2

ExpiryStatus = Literal["active", "near_expiry", "expired"]
QualityLevel = Literal["low", "medium", "high"]
SortKey = Literal["newest", "oldest", "price_low", "price_high", "most_viewed"]
SharePlatform = Literal["whatsapp", "facebook", "twitter", "copy"]

BUDGET_PRESETS = [
    {"label": "Under ₹3 Lakh", "min": 0, "max": 300000},
    {"label": "₹3-5 Lakh", "min": 300000, "max": 500000},
    {"label": "₹5-8 Lakh", "min": 500000, "max": 800000},
    {"label": "₹8-12 Lakh", "min": 800000, "max": 1200000},
    {"label": "₹12-20 Lakh", "min": 1200000, "max": 2000000},
    {"label": "Above ₹20 Lakh", "min": 2000000, "max": math.inf},
]


def _utc(dt: datetime) -> datetime:
    """Naive datetimes are stored as UTC."""
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def _now(now: Optional[datetime]) -> datetime:
    return _utc(now) if now else datetime.now(timezone.utc)


def _whole_days_since(start: datetime, now: datetime) -> int:
    return math.floor((now - _utc(start)).total_seconds() / 86400)


# ── Expiry ────────────────────────────────────────────────────────────────────

def get_expiry_date(vehicle: VehicleRecord) -> Optional[datetime]:
    if not vehicle.created_at:
        return None
    return _utc(vehicle.created_at) + timedelta(days=LISTING_EXPIRY_DAYS)


def get_days_until_expiry(vehicle: VehicleRecord, now: Optional[datetime] = None) -> int:
    if not vehicle.created_at:
        return LISTING_EXPIRY_DAYS
    return LISTING_EXPIRY_DAYS - _whole_days_since(vehicle.created_at, _now(now))


def is_listing_expired(vehicle: VehicleRecord, now: Optional[datetime] = None) -> bool:
    return get_days_until_expiry(vehicle, now) <= 0


def is_listing_near_expiry(vehicle: VehicleRecord, now: Optional[datetime] = None) -> bool:
    days_left = get_days_until_expiry(vehicle, now)
    return 0 < days_left <= LISTING_WARNING_DAYS


def get_expiry_status(vehicle: VehicleRecord, now: Optional[datetime] = None) -> ExpiryStatus:
    if is_listing_expired(vehicle, now):
        return "expired"
    if is_listing_near_expiry(vehicle, now):
        return "near_expiry"
    return "active"


def refresh_listing(vehicle: VehicleRecord, now: Optional[datetime] = None) -> VehicleRecord:
    """Bump to top of results without touching expiry."""
    now = _now(now)
    return vehicle.model_copy(update={"last_refreshed_at": now, "updated_at": now})


def renew_listing(vehicle: VehicleRecord, now: Optional[datetime] = None) -> VehicleRecord:
    """Restart the expiry window from `now`."""
    now = _now(now)
    return vehicle.model_copy(update={
        "created_at": now,
        "expires_at": now + timedelta(days=LISTING_EXPIRY_DAYS),
        "last_refreshed_at": now,
        "updated_at": now,
        "listing_status": "active",
    })


def auto_expire_listings(vehicles: list[VehicleRecord], now: Optional[datetime] = None) -> list[VehicleRecord]:
    """Unpublish every published listing past its expiry. Idempotent."""
    now = _now(now)
    result = []
    for vehicle in vehicles:
        if vehicle.status == "published" and is_listing_expired(vehicle, now):
            logger.info(f"Listing {vehicle.id} expired, unpublishing")
            vehicle = vehicle.model_copy(update={"listing_status": "expired", "status": "unpublished"})
        result.append(vehicle)
    return result


# ── Age ───────────────────────────────────────────────────────────────────────

def get_days_active(vehicle: VehicleRecord, now: Optional[datetime] = None) -> int:
    if vehicle.days_active is not None:
        return vehicle.days_active
    if not vehicle.created_at:
        return 0
    return _whole_days_since(vehicle.created_at, _now(now))


def format_listing_age(vehicle: VehicleRecord, now: Optional[datetime] = None) -> str:
    days = get_days_active(vehicle, now)
    if days <= 0:
        return "Posted today"
    if days == 1:
        return "Posted yesterday"
    if days < 7:
        return f"Posted {days} days ago"
    if days < 30:
        weeks = days // 7
        return f"Posted {weeks} {'week' if weeks == 1 else 'weeks'} ago"
    months = days // 30
    return f"Posted {months} {'month' if months == 1 else 'months'} ago"


# ── Engagement counters ───────────────────────────────────────────────────────

def track_phone_view(vehicle_id: int, service: Optional[DataService] = None) -> int:
    return (service or get_data_service()).increment_phone_views(vehicle_id)


def get_phone_views(vehicle_id: int, service: Optional[DataService] = None) -> int:
    return (service or get_data_service()).get_phone_views(vehicle_id)


def track_share(vehicle_id: int, platform: SharePlatform, service: Optional[DataService] = None) -> int:
    """Returns the new total share count."""
    return (service or get_data_service()).record_share(vehicle_id, platform)["total"]


def get_share_count(vehicle_id: int, service: Optional[DataService] = None) -> int:
    total = (service or get_data_service()).get_shares(vehicle_id).get("total", 0)
    return total if isinstance(total, int) else 0


def aggregate_listing_stats(
    vehicle_id: int,
    service: Optional[DataService] = None,
    now: Optional[datetime] = None,
) -> ListingStats:
    # views, unique views, chat starts and favorites are tracked server-side
    service = service or get_data_service()
    return ListingStats(
        vehicle_id=vehicle_id,
        date=_now(now).date().isoformat(),
        phone_views=get_phone_views(vehicle_id, service),
        shares=get_share_count(vehicle_id, service),
    )


# ── Pricing & quality ─────────────────────────────────────────────────────────

def calculate_best_price(vehicle: VehicleRecord, all_vehicles: list[VehicleRecord]) -> bool:
    """At least 10% below the mean of similar published listings."""
    similar = [
        v for v in all_vehicles
        if v.id != vehicle.id
        and v.make == vehicle.make
        and v.model == vehicle.model
        and abs(v.year - vehicle.year) <= SIMILAR_YEAR_WINDOW
        and v.status == "published"
    ]
    if not similar:
        return False
    average = sum(v.price for v in similar) / len(similar)
    return vehicle.price <= average * BEST_PRICE_RATIO


def _tier(count: int, tiers: list[tuple[int, int]]) -> int:
    """First (threshold, points) pair whose threshold `count` reaches."""
    for threshold, points in tiers:
        if count >= threshold:
            return points
    return 0


def calculate_listing_quality(vehicle: VehicleRecord) -> int:
    score = 0
    score += _tier(len(vehicle.images), [(8, 30), (5, 25), (3, 15), (1, 5)])
    score += _tier(len(vehicle.description or ""), [(200, 20), (100, 15), (50, 10), (1, 5)])
    score += _tier(len(vehicle.features), [(8, 15), (5, 10), (3, 5)])
    score += _tier(len(vehicle.documents), [(3, 15), (2, 10), (1, 5)])
    score += _tier(len(vehicle.service_records), [(3, 10), (1, 5)])
    if vehicle.video_url:
        score += 5
    if vehicle.certification_status == "approved":
        score += 5
    return min(score, 100)


def get_listing_quality_level(score: int) -> QualityLevel:
    if score >= 75:
        return "high"
    if score >= 50:
        return "medium"
    return "low"


# ── Browsing ──────────────────────────────────────────────────────────────────

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _listed_at(vehicle: VehicleRecord) -> datetime:
    stamp = vehicle.created_at or vehicle.updated_at
    return _utc(stamp) if stamp else _EPOCH


def sort_vehicles(vehicles: list[VehicleRecord], sort_by: SortKey) -> list[VehicleRecord]:
    """Stable sort into a new list. Unknown keys keep the original order."""
    if sort_by == "newest":
        return sorted(vehicles, key=_listed_at, reverse=True)
    if sort_by == "oldest":
        return sorted(vehicles, key=_listed_at)
    if sort_by == "price_low":
        return sorted(vehicles, key=lambda v: v.price)
    if sort_by == "price_high":
        return sorted(vehicles, key=lambda v: v.price, reverse=True)
    if sort_by == "most_viewed":
        return sorted(vehicles, key=lambda v: v.views or 0, reverse=True)
    return list(vehicles)


def filter_by_budget(vehicles: list[VehicleRecord], budget: dict) -> list[VehicleRecord]:
    """`budget` is one of BUDGET_PRESETS or any {min, max} mapping (inclusive)."""
    low, high = budget.get("min", 0), budget.get("max", math.inf)
    return [v for v in vehicles if low <= v.price <= high]
