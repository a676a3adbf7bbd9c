"""
CommentThread: one per approved confession, holding the whole comment list.

Invariant: total_comments == len(comments). Both are written in the same
versioned update.
"""
from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.types import JSON

from confessbot.db.base import Base, VersionedMixin


class CommentThread(VersionedMixin, Base):
    __tablename__ = "comment_threads"

    confession_id = Column(String(128), primary_key=True)
    confession_number = Column(Integer, nullable=False)
    confession_text = Column(Text, nullable=False)
    # [{id, text, user_id, user_name, timestamp, created_at}, ...]
    comments = Column(JSON, nullable=False, default=list)
    total_comments = Column(Integer, nullable=False, default=0)
