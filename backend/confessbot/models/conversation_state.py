"""
Conversation State Model: persistent FSM storage.

WHY THIS EXISTS:
- In-memory FSM state is lost on server restart
- Multi-instance deployments would have state conflicts
- Stateless webhook handlers must share the pending step of a user

At most one row per user. Absence of a row is the implicit "none" state.
"""
from sqlalchemy import BigInteger, Column, DateTime, String
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from confessbot.db.base import Base, VersionedMixin


class ConversationState(VersionedMixin, Base):
    """
    Persists the pending multi-step interaction per Telegram user.

    Schema:
        user_id: Telegram user identifier (primary key)
        state: awaiting_* tag
        payload: JSON context (target confession id, callback id, ...)
        updated_at: Last activity timestamp

    Lifecycle:
        1. Created when a flow is armed (menu action or button press)
        2. Overwritten when another flow is armed
        3. Deleted when the next plain-text message completes the flow
    """
    __tablename__ = "conversation_states"

    user_id = Column(BigInteger, primary_key=True, autoincrement=False)
    state = Column(String(64), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<ConversationState user_id={self.user_id} state={self.state}>"
