"""
Confession: anonymous submission awaiting or past admin moderation.
Status flow: pending -> approved | rejected. Both outcomes are terminal.
"""
from sqlalchemy import BigInteger, Column, DateTime, Integer, String, Text
from sqlalchemy.types import JSON

from confessbot.db.base import Base, VersionedMixin


class ConfessionStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Confession(VersionedMixin, Base):
    __tablename__ = "confessions"

    confession_id = Column(String(128), primary_key=True)
    # Public-facing number from the sequence counter, never reused
    confession_number = Column(Integer, unique=True, nullable=False, index=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    text = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default=ConfessionStatus.PENDING, index=True)
    hashtags = Column(JSON, nullable=False, default=list)
    total_comments = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    decided_by = Column(BigInteger, nullable=True)

    def __repr__(self):
        return f"<Confession #{self.confession_number} status={self.status}>"
