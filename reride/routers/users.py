# reride/routers/users.py
"""
/users collection endpoint. POST is an action dispatcher (login | register);
auth outcomes are {success, reason} bodies, everything else uses {error}.
"""

import secrets
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from reride.database import get_db
from reride.models.user import UserDocument
from reride.schemas.errors import RecordValidationError, validate_record
from reride.schemas.user import LoginCredentials, RegistrationRequest, UserRecord
from reride.utils.logger import get_logger
from reride.utils.passwords import hash_password, verify_password
from reride.utils.validation import normalize_email

logger = get_logger(__name__)

router = APIRouter()

DUPLICATE_EMAIL_REASON = "An account with this email already exists."


def _rejection(status_code: int, reason: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "reason": reason})


def _session_payload(user: dict[str, Any]) -> dict[str, Any]:
    return {"success": True, "user": user, "accessToken": secrets.token_urlsafe(32)}


@router.get("/users", summary="List users (passwords never included)")
def list_users(db: Session = Depends(get_db)):
    return [d.data for d in db.query(UserDocument).order_by(UserDocument.created_at).all()]


@router.post("/users", summary="Login or register, selected by `action`")
def user_action(body: dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    action = body.get("action")
    fields = {k: v for k, v in body.items() if k != "action"}
    if action == "login":
        return _login(fields, db)
    if action == "register":
        return _register(fields, db)
    raise HTTPException(status_code=400, detail="Invalid action")


def _login(fields: dict[str, Any], db: Session):
    try:
        creds = validate_record(LoginCredentials, fields)
    except RecordValidationError:
        return _rejection(400, "Email and password are required.")

    doc = db.get(UserDocument, creds.email)
    if doc is None or not verify_password(creds.password, doc.password_hash):
        logger.info(f"Failed login for {creds.email}")
        return _rejection(401, "Invalid credentials.")
    if creds.role and doc.data.get("role") != creds.role:
        return _rejection(403, f"User is not a registered {creds.role}.")
    if doc.data.get("status") == "inactive":
        return _rejection(403, "Your account has been deactivated.")
    return _session_payload(doc.data)


def _register(fields: dict[str, Any], db: Session):
    try:
        req = validate_record(RegistrationRequest, fields)
    except RecordValidationError as e:
        return _rejection(400, str(e))

    if db.get(UserDocument, req.email):
        return _rejection(409, DUPLICATE_EMAIL_REASON)

    user = req.to_user()
    doc = UserDocument(
        email=user.email,
        password_hash=hash_password(req.password),
        data=user.public().to_wire(),
        created_at=datetime.now(timezone.utc).replace(tzinfo=None),
    )
    db.add(doc)
    db.commit()
    logger.info(f"Registered {user.email} as {user.role}")
    return JSONResponse(status_code=201, content=_session_payload(doc.data))


@router.put("/users", summary="Update a user profile by email")
def update_user(body: dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    email = body.get("email")
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")
    doc = db.get(UserDocument, normalize_email(email))
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")

    password = body.get("password")
    try:
        user = validate_record(UserRecord, {**doc.data, **body, "email": doc.email})
    except RecordValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if password:
        doc.password_hash = hash_password(password)
    doc.data = user.public().to_wire()
    db.commit()
    return doc.data


@router.delete("/users", summary="Delete a user by email")
def delete_user(body: dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    email = body.get("email")
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")
    doc = db.get(UserDocument, normalize_email(email))
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    db.delete(doc)
    db.commit()
    logger.info(f"Deleted user {doc.email}")
    return {"success": True, "email": doc.email}
