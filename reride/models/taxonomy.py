# reride/models/taxonomy.py
"""Single-row table holding the whole vehicle taxonomy document."""

from sqlalchemy import Column, DateTime, Integer, JSON
from reride.database import Base

TAXONOMY_ROW_ID = 1


class TaxonomyDocument(Base):
    __tablename__ = "vehicle_taxonomy"

    id = Column(Integer, primary_key=True, default=TAXONOMY_ROW_ID)
    data = Column(JSON, nullable=False)
    updated_at = Column(DateTime, nullable=False)
