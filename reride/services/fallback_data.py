# reride/services/fallback_data.py
"""
Bundled default dataset used to seed an empty local cache, so the data layer
always has something to show when the backend has never been reached.
Builders return fresh copies; callers may mutate what they get.
"""

from datetime import datetime, timedelta, timezone

from reride.schemas.taxonomy import VehicleTaxonomy
from reride.schemas.user import UserRecord
from reride.schemas.vehicle import VehicleCategory, VehicleRecord

DEMO_SELLER_EMAIL = "demo@reride.com"
DEMO_CUSTOMER_EMAIL = "customer@reride.com"
DEMO_PASSWORD = "password"


def _days_ago(days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


def default_vehicles() -> list[VehicleRecord]:
    return [
        VehicleRecord(
            id=1,
            make="Maruti Suzuki",
            model="Swift",
            variant="VXi",
            year=2022,
            price=650000,
            mileage=18000,
            fuel_type="Petrol",
            transmission="Manual",
            category=VehicleCategory.FOUR_WHEELER.value,
            city="Mumbai",
            state="MH",
            location="Mumbai, MH",
            seller_email=DEMO_SELLER_EMAIL,
            images=["https://picsum.photos/800/600?random=1"],
            features=["Power Steering", "Air Conditioning"],
            description="Well maintained Swift in excellent condition",
            status="published",
            listing_status="active",
            is_featured=True,
            views=150,
            inquiries_count=8,
            engine="1.2L Petrol",
            color="White",
            created_at=_days_ago(12),
        ),
        VehicleRecord(
            id=2,
            make="Honda",
            model="Activa 6G",
            year=2021,
            price=62000,
            mileage=9500,
            fuel_type="Petrol",
            transmission="Automatic",
            category=VehicleCategory.TWO_WHEELER.value,
            city="Pune",
            state="MH",
            location="Pune, MH",
            seller_email=DEMO_SELLER_EMAIL,
            images=["https://picsum.photos/800/600?random=2"],
            description="Single owner scooter, serviced on schedule",
            status="published",
            listing_status="active",
            views=42,
            inquiries_count=3,
            created_at=_days_ago(30),
        ),
    ]


def default_users() -> list[UserRecord]:
    """Users without passwords; see DEFAULT_CREDENTIALS for the offline login map."""
    return [
        UserRecord(
            name="Demo Seller",
            email=DEMO_SELLER_EMAIL,
            mobile="9876543210",
            role="seller",
            status="active",
            location="Mumbai",
            created_at=_days_ago(30),
            dealership_name="Demo Motors",
            bio="Your trusted vehicle partner",
            avatar_url=f"https://i.pravatar.cc/150?u={DEMO_SELLER_EMAIL}",
            subscription_plan="free",
            featured_credits=0,
            used_certifications=0,
            average_rating=4.5,
            rating_count=12,
        ),
        UserRecord(
            name="Demo Customer",
            email=DEMO_CUSTOMER_EMAIL,
            mobile="9876543211",
            role="customer",
            status="active",
            location="Mumbai",
            created_at=_days_ago(10),
        ),
    ]


# email -> plain password; hashed when the credentials map is seeded
DEFAULT_CREDENTIALS = {
    DEMO_SELLER_EMAIL: DEMO_PASSWORD,
    DEMO_CUSTOMER_EMAIL: DEMO_PASSWORD,
}


def default_vehicle_data() -> VehicleTaxonomy:
    return VehicleTaxonomy.model_validate({
        VehicleCategory.FOUR_WHEELER.value: [
            {"name": "Maruti Suzuki", "models": [
                {"name": "Swift", "variants": ["LXi", "VXi", "ZXi", "ZXi+"]},
                {"name": "Baleno", "variants": ["Sigma", "Delta", "Zeta", "Alpha"]},
            ]},
            {"name": "Hyundai", "models": [
                {"name": "Creta", "variants": ["E", "EX", "S", "SX"]},
                {"name": "i20", "variants": ["Magna", "Sportz", "Asta"]},
            ]},
            {"name": "Toyota", "models": [
                {"name": "Camry", "variants": ["Hybrid"]},
                {"name": "Innova Crysta", "variants": ["GX", "VX", "ZX"]},
            ]},
        ],
        VehicleCategory.TWO_WHEELER.value: [
            {"name": "Honda", "models": [
                {"name": "Activa 6G", "variants": ["Standard", "DLX"]},
            ]},
            {"name": "Royal Enfield", "models": [
                {"name": "Classic 350", "variants": ["Redditch", "Halcyon", "Signals"]},
            ]},
        ],
        VehicleCategory.THREE_WHEELER.value: [
            {"name": "Bajaj", "models": [
                {"name": "RE", "variants": ["Compact", "Maxima"]},
            ]},
        ],
    })
