"""Named monotonically increasing counters (confession numbers)."""
from sqlalchemy import Column, Integer, String

from confessbot.db.base import Base, VersionedMixin


class Counter(VersionedMixin, Base):
    __tablename__ = "counters"

    name = Column(String(64), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
