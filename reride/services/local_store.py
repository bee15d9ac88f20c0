# reride/services/local_store.py
"""
Persistent Local Store: durable, quota-bounded key/value storage for the
client data layer (the Python stand-in for browser localStorage).

One SQLAlchemy table, one short session per call. Values are JSON text;
get_json() never raises and returns the caller's fallback on a missing,
corrupt or unreadable value.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from reride.config import settings
from reride.database import make_engine
from reride.utils.json_parser import dump_json, safe_parse_json
from reride.utils.logger import get_logger

logger = get_logger(__name__)

StoreBase = declarative_base()


class StoreEntry(StoreBase):
    __tablename__ = "local_store"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)   # UTF-8 length of key + value
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<StoreEntry {self.key} ({self.size_bytes} bytes)>"


def entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class LocalStoreError(Exception):
    """Storage fault (unreachable file, locked database, ...)."""


class QuotaExceededError(LocalStoreError):
    """The write would push the store over its byte quota."""


class LocalStore:
    def __init__(self, url: Optional[str] = None, quota_bytes: Optional[int] = None):
        self.url = url or settings.LOCAL_STORE_URL
        self.quota_bytes = quota_bytes if quota_bytes is not None else settings.LOCAL_STORE_QUOTA_BYTES
        self._engine = make_engine(self.url)
        self._session = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        StoreBase.metadata.create_all(bind=self._engine)

    # ── Raw primitives ────────────────────────────────────────────────────
    def get_item(self, key: str) -> Optional[str]:
        try:
            with self._session() as db:
                entry = db.get(StoreEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            raise LocalStoreError(f"read {key} failed: {e}") from e

    def set_item(self, key: str, value: str):
        try:
            with self._session() as db:
                size = entry_size(key, value)
                others = db.scalar(
                    select(func.coalesce(func.sum(StoreEntry.size_bytes), 0)).where(StoreEntry.key != key)
                )
                needed = int(others or 0) + size
                if needed > self.quota_bytes:
                    raise QuotaExceededError(
                        f"writing {key} needs {needed} bytes, quota is {self.quota_bytes}"
                    )
                entry = db.get(StoreEntry, key)
                now = datetime.now(timezone.utc).replace(tzinfo=None)
                if entry:
                    entry.value = value
                    entry.size_bytes = size
                    entry.updated_at = now
                else:
                    db.add(StoreEntry(key=key, value=value, size_bytes=size, updated_at=now))
                db.commit()
        except SQLAlchemyError as e:
            raise LocalStoreError(f"write {key} failed: {e}") from e

    def remove_item(self, key: str):
        try:
            with self._session() as db:
                entry = db.get(StoreEntry, key)
                if entry:
                    db.delete(entry)
                    db.commit()
        except SQLAlchemyError as e:
            raise LocalStoreError(f"remove {key} failed: {e}") from e

    def keys(self) -> list[str]:
        try:
            with self._session() as db:
                return list(db.scalars(select(StoreEntry.key).order_by(StoreEntry.key)))
        except SQLAlchemyError as e:
            raise LocalStoreError(f"listing keys failed: {e}") from e

    def clear(self):
        try:
            with self._session() as db:
                db.query(StoreEntry).delete()
                db.commit()
        except SQLAlchemyError as e:
            raise LocalStoreError(f"clear failed: {e}") from e

    def usage_bytes(self) -> int:
        try:
            with self._session() as db:
                total = db.scalar(select(func.coalesce(func.sum(StoreEntry.size_bytes), 0)))
                return int(total or 0)
        except SQLAlchemyError as e:
            raise LocalStoreError(f"usage query failed: {e}") from e

    # ── JSON boundary ─────────────────────────────────────────────────────
    def get_json(self, key: str, fallback: Any = None) -> Any:
        try:
            raw = self.get_item(key)
        except LocalStoreError as e:
            logger.warning(f"Local store read failed for {key}, using fallback: {e}")
            return fallback
        if raw is None:
            return fallback
        data = safe_parse_json(raw, default=None)
        if data is None:
            logger.warning(f"Corrupt value under {key}, using fallback")
            return fallback
        return data

    def set_json(self, key: str, data: Any):
        """Raises QuotaExceededError / LocalStoreError; the caller decides how to degrade."""
        self.set_item(key, dump_json(data))
