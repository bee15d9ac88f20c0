# reride/models/user.py
"""
Users keyed by normalised email. The bcrypt hash lives in its own column
and is never part of `data`, so serving `data` can't leak it.
"""

from sqlalchemy import Column, DateTime, String, JSON
from reride.database import Base


class UserDocument(Base):
    __tablename__ = "users"

    email = Column(String(320), primary_key=True)
    password_hash = Column(String(128), nullable=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<UserDocument {self.email} role={self.data.get('role')}>"
