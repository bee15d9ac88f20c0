# reride/services/buyer_service.py
"""
Buyer-side derived data: saved searches, search matching, recently viewed
vehicles and wishlist price-drop notifications.

Price drops are watermarked: check_price_drops() records the last seen price
per vehicle, so the same drop is reported once.
"""

import time
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic.alias_generators import to_snake

from reride.schemas.errors import validate_record
from reride.schemas.saved_search import (
    BuyerActivity,
    PriceDrop,
    SavedSearch,
    SearchFilters,
)
from reride.schemas.vehicle import VehicleRecord
from reride.services.data_service import DataService, get_data_service
from reride.utils.logger import get_logger

logger = get_logger(__name__)

RECENTLY_VIEWED_LIMIT = 20

_IMMUTABLE_SEARCH_FIELDS = {"id", "created_at", "user_id"}


# ── Saved searches ────────────────────────────────────────────────────────────

def get_saved_searches(user_id: str, service: Optional[DataService] = None) -> list[SavedSearch]:
    return (service or get_data_service()).get_saved_searches(user_id)


def save_search(
    user_id: str,
    search: Union[SearchFilters, dict[str, Any]],
    name: str = "",
    alerts_enabled: bool = True,
    service: Optional[DataService] = None,
) -> SavedSearch:
    """
    Store a new saved search. `search` is either bare filters or a dict with
    name / filters / alertsEnabled. Id and creation time are assigned here.
    """
    service = service or get_data_service()
    searches = service.get_saved_searches(user_id)

    if isinstance(search, dict) and "filters" in search:
        name = search.get("name", name)
        alerts_enabled = search.get("alertsEnabled", search.get("alerts_enabled", alerts_enabled))
        search = search["filters"]
    filters = validate_record(SearchFilters, search)

    search_id = int(time.time() * 1000)
    taken = {s.id for s in searches}
    while search_id in taken:
        search_id += 1

    saved = SavedSearch(
        id=search_id,
        user_id=user_id,
        name=name,
        filters=filters,
        alerts_enabled=alerts_enabled,
        created_at=datetime.now(timezone.utc),
    )
    service.set_saved_searches(user_id, searches + [saved])
    logger.info(f"Saved search {saved.id} for {user_id}")
    return saved


def update_saved_search(
    user_id: str,
    search_id: int,
    updates: dict[str, Any],
    service: Optional[DataService] = None,
) -> Optional[SavedSearch]:
    """Merge `updates` into one search. Id, owner and creation time never change."""
    service = service or get_data_service()
    updates = {to_snake(k): v for k, v in updates.items()}
    updates = {k: v for k, v in updates.items() if k not in _IMMUTABLE_SEARCH_FIELDS}

    updated = None
    searches = []
    for search in service.get_saved_searches(user_id):
        if search.id == search_id:
            merged = {**search.model_dump(), **updates}
            search = updated = validate_record(SavedSearch, merged)
        searches.append(search)

    if updated is None:
        logger.warning(f"Saved search {search_id} not found for {user_id}")
        return None
    service.set_saved_searches(user_id, searches)
    return updated


def delete_saved_search(user_id: str, search_id: int, service: Optional[DataService] = None) -> bool:
    service = service or get_data_service()
    searches = service.get_saved_searches(user_id)
    remaining = [s for s in searches if s.id != search_id]
    if len(remaining) == len(searches):
        return False
    service.set_saved_searches(user_id, remaining)
    return True


def match_vehicles_to_search(vehicles: list[VehicleRecord], search: SavedSearch) -> list[VehicleRecord]:
    """Conjunction of every filter that is set. Location is matched against the city."""
    f = search.filters

    def matches(v: VehicleRecord) -> bool:
        if f.make and v.make != f.make:
            return False
        if f.model and v.model != f.model:
            return False
        if f.min_price is not None and v.price < f.min_price:
            return False
        if f.max_price is not None and v.price > f.max_price:
            return False
        if f.min_year is not None and v.year < f.min_year:
            return False
        if f.max_year is not None and v.year > f.max_year:
            return False
        if f.category and v.category != f.category:
            return False
        if f.fuel_type and v.fuel_type != f.fuel_type:
            return False
        if f.transmission and v.transmission != f.transmission:
            return False
        if f.location and v.city != f.location:
            return False
        return True

    return [v for v in vehicles if matches(v)]


def find_new_matches(
    user_id: str,
    vehicles: list[VehicleRecord],
    service: Optional[DataService] = None,
) -> list[dict[str, Any]]:
    """[{searchId, matches}] for every saved search of the user."""
    return [
        {"searchId": search.id, "matches": match_vehicles_to_search(vehicles, search)}
        for search in get_saved_searches(user_id, service)
    ]


# ── Buyer activity ────────────────────────────────────────────────────────────

def get_buyer_activity(user_id: str, service: Optional[DataService] = None) -> BuyerActivity:
    """Stored activity, or a fresh one seeded with the user's saved searches."""
    service = service or get_data_service()
    activity = service.get_buyer_activity(user_id)
    if activity is None:
        activity = BuyerActivity(user_id=user_id, saved_searches=service.get_saved_searches(user_id))
    return activity


def save_buyer_activity(activity: BuyerActivity, service: Optional[DataService] = None) -> bool:
    return (service or get_data_service()).set_buyer_activity(activity)


def get_recently_viewed(user_id: str, service: Optional[DataService] = None) -> list[int]:
    return get_buyer_activity(user_id, service).recently_viewed


def add_to_recently_viewed(user_id: str, vehicle_id: int, service: Optional[DataService] = None) -> list[int]:
    """Most recent first, deduplicated, capped at RECENTLY_VIEWED_LIMIT."""
    activity = get_buyer_activity(user_id, service)
    viewed = [vehicle_id] + [i for i in activity.recently_viewed if i != vehicle_id]
    activity.recently_viewed = viewed[:RECENTLY_VIEWED_LIMIT]
    save_buyer_activity(activity, service)
    return activity.recently_viewed


# ── Price drops ───────────────────────────────────────────────────────────────

def track_price_drop(
    user_id: str,
    vehicle_id: int,
    old_price: float,
    new_price: float,
    service: Optional[DataService] = None,
):
    activity = get_buyer_activity(user_id, service)
    if vehicle_id in activity.notifications.price_drops:
        return
    activity.notifications.price_drops.append(vehicle_id)
    save_buyer_activity(activity, service)
    logger.info(f"Price drop on vehicle {vehicle_id} for {user_id}: {old_price} → {new_price}")


def check_price_drops(
    user_id: str,
    wishlist: list[int],
    vehicles: list[VehicleRecord],
    service: Optional[DataService] = None,
) -> list[PriceDrop]:
    """
    Compare wishlist prices against the stored watermark, notify on drops,
    then move the watermark to the current prices.
    """
    service = service or get_data_service()
    history = service.get_price_history()
    by_id = {v.id: v for v in vehicles}
    drops = []

    for vehicle_id in wishlist:
        vehicle = by_id.get(vehicle_id)
        if vehicle is None:
            continue
        previous = history.get(vehicle_id)
        if previous and vehicle.price < previous:
            drops.append(PriceDrop(vehicle_id=vehicle_id, old_price=previous, new_price=vehicle.price))
            track_price_drop(user_id, vehicle_id, previous, vehicle.price, service)
        history[vehicle_id] = vehicle.price

    service.set_price_history(history)
    return drops


def update_price_history(vehicle_id: int, price: float, service: Optional[DataService] = None) -> bool:
    service = service or get_data_service()
    history = service.get_price_history()
    history[vehicle_id] = price
    return service.set_price_history(history)


def clear_price_drop_notifications(
    user_id: str,
    vehicle_ids: list[int],
    service: Optional[DataService] = None,
) -> list[int]:
    """Returns the price-drop notifications still pending."""
    activity = get_buyer_activity(user_id, service)
    cleared = set(vehicle_ids)
    activity.notifications.price_drops = [i for i in activity.notifications.price_drops if i not in cleared]
    save_buyer_activity(activity, service)
    return activity.notifications.price_drops
