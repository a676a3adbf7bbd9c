"""
UserProfile: one row per Telegram user, created lazily on first contact.

Never deleted. Blocking flips `is_active` instead. `followers` and
`following` are JSON id lists mutated only through the record store's
unique append / remove so both sides stay symmetric.
"""
from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from confessbot.db.base import Base, VersionedMixin

NOTIFICATION_KINDS = ("new_follower", "new_comment", "new_confession", "direct_message")


def default_notifications() -> dict:
    return {kind: True for kind in NOTIFICATION_KINDS}


def default_comment_settings() -> dict:
    return {"allow_comments": "everyone", "allow_anonymous": True, "require_approval": False}


class UserProfile(VersionedMixin, Base):
    __tablename__ = "users"

    telegram_id = Column(BigInteger, primary_key=True, autoincrement=False)
    username = Column(String(32), unique=True, nullable=True, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    bio = Column(String(255), nullable=True)

    reputation = Column(Integer, nullable=False, default=0)
    daily_streak = Column(Integer, nullable=False, default=0)
    last_checkin = Column(DateTime(timezone=True), nullable=True)
    total_confessions = Column(Integer, nullable=False, default=0)
    comment_count = Column(Integer, nullable=False, default=0)

    followers = Column(JSON, nullable=False, default=list)
    following = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    notifications = Column(JSON, nullable=False, default=default_notifications)
    comment_settings = Column(JSON, nullable=False, default=default_comment_settings)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<UserProfile telegram_id={self.telegram_id} username={self.username}>"
