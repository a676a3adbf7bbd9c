"""Per-user cooldown and rate-limit records."""
from sqlalchemy import BigInteger, Column
from sqlalchemy.types import JSON

from confessbot.db.base import Base, VersionedMixin


class Cooldown(VersionedMixin, Base):
    """Map of action kind -> last action epoch millis."""
    __tablename__ = "cooldowns"

    user_id = Column(BigInteger, primary_key=True, autoincrement=False)
    actions = Column(JSON, nullable=False, default=dict)


class RateLimit(VersionedMixin, Base):
    """Comment timestamps (epoch millis), pruned to the window on every write."""
    __tablename__ = "rate_limits"

    user_id = Column(BigInteger, primary_key=True, autoincrement=False)
    comment_timestamps = Column(JSON, nullable=False, default=list)
