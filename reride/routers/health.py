# reride/routers/health.py
"""
Backend health check: database connectivity plus document counts per
collection. Answers 503 when the database cannot be queried.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reride.database import get_db
from reride.models import TaxonomyDocument, UserDocument, VehicleDocument

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    result = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "backend": "ok",
        "database": "unknown",
        "collections": {},
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
        for model in (VehicleDocument, UserDocument, TaxonomyDocument):
            result["collections"][model.__tablename__] = db.scalar(select(func.count()).select_from(model))
    except SQLAlchemyError as e:
        result["database"] = f"error: {e}"
        result["status"] = "degraded"
        return JSONResponse(status_code=503, content=result)

    return result
