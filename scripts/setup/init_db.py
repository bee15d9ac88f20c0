# scripts/setup/init_db.py
"""
Initialize database: creates all tables and loads the demo dataset.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py [--no-seed]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from reride.database import SessionLocal, create_tables, engine, seed_defaults
from reride.config import settings
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError


def main():
    parser = argparse.ArgumentParser(description="Create ReRide backend tables")
    parser.add_argument("--no-seed", action="store_true", help="Skip loading the demo dataset")
    args = parser.parse_args()

    print("🗄️  ReRide DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except SQLAlchemyError as e:
        print(f"❌ Cannot connect to database: {e}")
        sys.exit(1)

    # Create all tables
    print("\n📋 Creating tables...")
    create_tables()
    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    if not args.no_seed:
        with SessionLocal() as db:
            added = seed_defaults(db)
        print("\n🌱 Demo data:")
        for table, count in added.items():
            print(f"   {table}: {count} added")

    print("\n🎉 Database ready! You can now start the backend:")
    print("   uvicorn reride.main:app --host 0.0.0.0 --port 3000 --reload")


if __name__ == "__main__":
    main()
