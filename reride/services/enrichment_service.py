# reride/services/enrichment_service.py
"""
Denormalises seller display info (name, badges, rating) onto vehicle records.
Pure: returns copies, looks sellers up by email case-insensitively.
"""

from typing import Optional

from reride.schemas.user import UserRecord
from reride.schemas.vehicle import VehicleRecord
from reride.utils.validation import normalize_email

UNKNOWN_SELLER_NAME = "Seller"


def _seller_index(users: list[UserRecord]) -> dict[str, UserRecord]:
    return {u.email: u for u in users}


def _enrich(vehicle: VehicleRecord, seller: Optional[UserRecord]) -> VehicleRecord:
    if seller is None:
        return vehicle.model_copy(update={
            "seller_name": vehicle.seller_name or UNKNOWN_SELLER_NAME,
            "seller_average_rating": vehicle.seller_average_rating or 0,
            "seller_rating_count": vehicle.seller_rating_count or 0,
        })
    return vehicle.model_copy(update={
        "seller_name": seller.name or seller.dealership_name or UNKNOWN_SELLER_NAME,
        "seller_badges": list(seller.badges),
        "seller_average_rating": seller.average_rating or 0,
        "seller_rating_count": seller.rating_count or 0,
    })


def _lookup(index: dict[str, UserRecord], vehicle: VehicleRecord) -> Optional[UserRecord]:
    if not vehicle.seller_email:
        return None
    return index.get(normalize_email(vehicle.seller_email))


def enrich_vehicle_with_seller_info(vehicle: VehicleRecord, users: list[UserRecord]) -> VehicleRecord:
    return _enrich(vehicle, _lookup(_seller_index(users), vehicle))


def enrich_vehicles_with_seller_info(vehicles: list[VehicleRecord], users: list[UserRecord]) -> list[VehicleRecord]:
    index = _seller_index(users)
    return [_enrich(v, _lookup(index, v)) for v in vehicles]
