# reride/models/vehicle.py
"""
Vehicle listings, stored as one JSON document per record.
`data` holds the camelCase wire form; only the id is a real column.
"""

from sqlalchemy import Column, DateTime, Integer, JSON
from reride.database import Base


class VehicleDocument(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<VehicleDocument {self.id} {self.data.get('make')} {self.data.get('model')}>"
