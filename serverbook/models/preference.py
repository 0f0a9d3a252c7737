"""
Per-user preference record, keyed by the user id.
"""

from sqlalchemy import Column, String, JSON

from serverbook.db.base import Base, TimestampMixin


class Preference(Base, TimestampMixin):
    __tablename__ = "preferences"

    id = Column(String(32), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Preference(id={self.id}, keys={sorted((self.data or {}).keys())})>"
