# reride/services/vehicle_data_service.py
"""
Vehicle taxonomy (category → make → model → variants) lookups and edits.
Persistence is DataService's job; the helpers here are pure.
"""

from typing import Optional, Union

from reride.schemas.taxonomy import VehicleMake, VehicleModel, VehicleTaxonomy
from reride.services.data_service import DataService, get_data_service


async def get_vehicle_data(service: Optional[DataService] = None) -> VehicleTaxonomy:
    return await (service or get_data_service()).get_vehicle_data()


async def save_vehicle_data(data: Union[VehicleTaxonomy, dict], service: Optional[DataService] = None) -> bool:
    """True when the backend accepted the taxonomy, False when it only reached the local cache."""
    return await (service or get_data_service()).save_vehicle_data(data)


def get_categories(data: VehicleTaxonomy) -> list[str]:
    return data.categories()


def _find_make(data: VehicleTaxonomy, category: str, make: str) -> Optional[VehicleMake]:
    return next((m for m in data.makes(category) if m.name == make), None)


def _find_model(data: VehicleTaxonomy, category: str, make: str, model: str) -> Optional[VehicleModel]:
    found = _find_make(data, category, make)
    if found is None:
        return None
    return next((m for m in found.models if m.name == model), None)


def get_makes(data: VehicleTaxonomy, category: str) -> list[str]:
    return [m.name for m in data.makes(category)]


def get_models(data: VehicleTaxonomy, category: str, make: str) -> list[str]:
    found = _find_make(data, category, make)
    return [m.name for m in found.models] if found else []


def get_variants(data: VehicleTaxonomy, category: str, make: str, model: str) -> list[str]:
    found = _find_model(data, category, make, model)
    return list(found.variants) if found else []


def add_make(data: VehicleTaxonomy, category: str, make: str) -> VehicleTaxonomy:
    """New taxonomy with `make` under `category`. No-op when it already exists."""
    if _find_make(data, category, make):
        return data
    updated = data.model_copy(deep=True)
    updated.root.setdefault(category, []).append(VehicleMake(name=make))
    return updated


def add_model(
    data: VehicleTaxonomy,
    category: str,
    make: str,
    model: str,
    variants: Optional[list[str]] = None,
) -> VehicleTaxonomy:
    """New taxonomy with `model` under (category, make), creating the make if needed."""
    if _find_model(data, category, make, model):
        return data
    updated = add_make(data, category, make).model_copy(deep=True)
    _find_make(updated, category, make).models.append(VehicleModel(name=model, variants=list(variants or [])))
    return updated
