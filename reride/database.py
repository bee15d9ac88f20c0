# reride/database.py
"""
Database connection, session management, and table creation for the
reference backend. Uses SQLAlchemy; SQLite by default, PostgreSQL in production.
make_engine() is shared with the client-side LocalStore.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from reride.config import settings


def make_engine(url: str) -> Engine:
    """Engine with pool settings that suit the backend behind the URL."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(
        url,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        pool_size=10,
        max_overflow=20,
        echo=False,
    )


engine = make_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind: Engine = None):
    """
    Creates all document tables. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from reride.models.vehicle import VehicleDocument       # noqa
    from reride.models.user import UserDocument             # noqa
    from reride.models.taxonomy import TaxonomyDocument     # noqa

    Base.metadata.create_all(bind=bind or engine)


def seed_defaults(db) -> dict[str, int]:
    """
    Load the bundled demo vehicles, users and taxonomy into empty tables.
    Tables that already hold rows are left alone. Returns rows added per table.
    """
    from datetime import datetime, timezone
    from reride.models.vehicle import VehicleDocument
    from reride.models.user import UserDocument
    from reride.models.taxonomy import TAXONOMY_ROW_ID, TaxonomyDocument
    from reride.services.fallback_data import (
        DEFAULT_CREDENTIALS, default_users, default_vehicle_data, default_vehicles,
    )
    from reride.utils.passwords import hash_password

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    added = {"vehicles": 0, "users": 0, "vehicle_taxonomy": 0}

    if db.query(VehicleDocument).count() == 0:
        for v in default_vehicles():
            db.add(VehicleDocument(id=v.id, data=v.to_wire(), created_at=now, updated_at=now))
            added["vehicles"] += 1

    if db.query(UserDocument).count() == 0:
        for u in default_users():
            db.add(UserDocument(
                email=u.email,
                password_hash=hash_password(DEFAULT_CREDENTIALS[u.email]),
                data=u.public().to_wire(),
                created_at=now,
            ))
            added["users"] += 1

    if db.get(TaxonomyDocument, TAXONOMY_ROW_ID) is None:
        db.add(TaxonomyDocument(id=TAXONOMY_ROW_ID, data=default_vehicle_data().to_wire(), updated_at=now))
        added["vehicle_taxonomy"] += 1

    db.commit()
    return added
