# reride/routers/vehicles.py
"""
/vehicles collection endpoint. `?type=data` switches GET/POST to the
vehicle taxonomy document instead of the listings collection.
"""

import time
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from reride.database import get_db
from reride.models.taxonomy import TAXONOMY_ROW_ID, TaxonomyDocument
from reride.models.vehicle import VehicleDocument
from reride.schemas.errors import RecordValidationError, validate_record
from reride.schemas.taxonomy import VehicleTaxonomy
from reride.schemas.vehicle import VehicleRecord
from reride.services.fallback_data import default_vehicle_data
from reride.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

TAXONOMY_TYPE = "data"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _validated(body: dict[str, Any]) -> VehicleRecord:
    try:
        return validate_record(VehicleRecord, body)
    except RecordValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _store(doc: VehicleDocument, record: VehicleRecord):
    doc.data = record.to_wire()
    doc.updated_at = _utcnow()


@router.get("/vehicles", summary="List vehicles, or the taxonomy with ?type=data")
def list_vehicles(type: Optional[str] = Query(None), db: Session = Depends(get_db)):
    if type == TAXONOMY_TYPE:
        doc = db.get(TaxonomyDocument, TAXONOMY_ROW_ID)
        return doc.data if doc else default_vehicle_data().to_wire()
    docs = db.query(VehicleDocument).order_by(VehicleDocument.created_at.desc()).all()
    return [d.data for d in docs]


@router.post("/vehicles", status_code=status.HTTP_201_CREATED, summary="Create a vehicle, or save the taxonomy")
def create_vehicle(
    response: Response,
    body: dict[str, Any] = Body(...),
    type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    if type == TAXONOMY_TYPE:
        try:
            taxonomy = validate_record(VehicleTaxonomy, body)
        except RecordValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        doc = db.get(TaxonomyDocument, TAXONOMY_ROW_ID) or TaxonomyDocument(id=TAXONOMY_ROW_ID)
        doc.data = taxonomy.to_wire()
        doc.updated_at = _utcnow()
        db.add(doc)
        db.commit()
        response.status_code = status.HTTP_200_OK
        return {"success": True}

    if not body.get("id"):
        body = {**body, "id": int(time.time() * 1000)}
    record = _validated(body)
    if db.get(VehicleDocument, record.id):
        raise HTTPException(status_code=409, detail=f"Vehicle {record.id} already exists")

    now = _utcnow()
    if record.created_at is None:
        record = record.model_copy(update={"created_at": now.replace(tzinfo=timezone.utc)})
    doc = VehicleDocument(id=record.id, created_at=now)
    _store(doc, record)
    db.add(doc)
    db.commit()
    logger.info(f"Vehicle {record.id} created ({record.make} {record.model})")
    return doc.data


@router.put("/vehicles", summary="Update (or create) a vehicle by id")
def update_vehicle(response: Response, body: dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    if body.get("id") is None:
        raise HTTPException(status_code=400, detail="Vehicle id is required")
    record = _validated(body)

    doc = db.get(VehicleDocument, record.id)
    if doc is None:
        doc = VehicleDocument(id=record.id, created_at=_utcnow())
        db.add(doc)
        response.status_code = status.HTTP_201_CREATED
    record = record.model_copy(update={"updated_at": datetime.now(timezone.utc)})
    _store(doc, record)
    db.commit()
    return doc.data


@router.delete("/vehicles", summary="Delete a vehicle by id")
def delete_vehicle(body: dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    try:
        vehicle_id = int(body["id"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Vehicle id is required")
    doc = db.get(VehicleDocument, vehicle_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    db.delete(doc)
    db.commit()
    logger.info(f"Vehicle {vehicle_id} deleted")
    return {"success": True, "id": vehicle_id}
