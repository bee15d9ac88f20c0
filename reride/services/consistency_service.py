# reride/services/consistency_service.py
"""
Read-only audit of a vehicles/users snapshot: orphaned listings, duplicate
keys and out-of-range values. Nothing is repaired here; callers decide.

Records may be validated models or raw wire dicts (camelCase or snake_case).
A validated VehicleRecord can never carry a negative price, mileage or year,
so invalid_value_ids only reports on raw dicts and model_construct() records,
e.g. a cache or API payload audited before validation.
"""

from collections import Counter
from typing import Any, Union

from pydantic import BaseModel, Field

from reride.schemas.user import UserRecord
from reride.schemas.vehicle import VehicleRecord
from reride.utils.logger import get_logger
from reride.utils.validation import normalize_email

logger = get_logger(__name__)

VehicleLike = Union[VehicleRecord, dict[str, Any]]
UserLike = Union[UserRecord, dict[str, Any]]

NON_NEGATIVE_FIELDS = ("price", "mileage", "year")


class ConsistencyReport(BaseModel):
    orphaned_vehicle_ids: list[int] = Field(default_factory=list)     # seller email not in users
    duplicate_vehicle_ids: list[int] = Field(default_factory=list)
    duplicate_emails: list[str] = Field(default_factory=list)
    invalid_value_ids: list[int] = Field(default_factory=list)        # negative price, mileage or year

    @property
    def is_consistent(self) -> bool:
        return not (
            self.orphaned_vehicle_ids
            or self.duplicate_vehicle_ids
            or self.duplicate_emails
            or self.invalid_value_ids
        )


def _value(record: Union[BaseModel, dict], field: str, model: type[BaseModel]) -> Any:
    if isinstance(record, dict):
        alias = model.model_fields[field].alias or field
        return record.get(alias, record.get(field))
    return getattr(record, field, None)


def _is_negative(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value < 0


def _duplicates(values) -> list:
    return sorted(v for v, n in Counter(values).items() if n > 1)


def audit_consistency(vehicles: list[VehicleLike], users: list[UserLike]) -> ConsistencyReport:
    emails = [normalize_email(_value(u, "email", UserRecord)) for u in users]
    known = set(emails)

    def vid(v):
        return _value(v, "id", VehicleRecord)

    def seller(v):
        return _value(v, "seller_email", VehicleRecord)

    report = ConsistencyReport(
        orphaned_vehicle_ids=[
            vid(v) for v in vehicles
            if seller(v) and normalize_email(seller(v)) not in known
        ],
        duplicate_vehicle_ids=_duplicates(vid(v) for v in vehicles if vid(v) is not None),
        duplicate_emails=_duplicates(emails),
        invalid_value_ids=[
            vid(v) for v in vehicles
            if any(_is_negative(_value(v, f, VehicleRecord)) for f in NON_NEGATIVE_FIELDS)
        ],
    )
    if not report.is_consistent:
        logger.warning(
            f"Consistency audit: {len(report.orphaned_vehicle_ids)} orphaned, "
            f"{len(report.duplicate_vehicle_ids)} duplicate ids, "
            f"{len(report.duplicate_emails)} duplicate emails, "
            f"{len(report.invalid_value_ids)} invalid values"
        )
    return report
