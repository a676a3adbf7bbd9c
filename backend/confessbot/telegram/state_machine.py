"""
Persistent per-user conversation state.

A user has at most one armed step. Arming a step overwrites whatever was
armed before; the next plain-text message claims it (delete guarded by the
row version, so two concurrent messages cannot both consume it) and hands
it to the completion registered for that step.
"""
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

from confessbot.core.exceptions import ValidationFailed

logger = logging.getLogger(__name__)


# ==============================================================================
# FSM STATES
# ==============================================================================

class ConversationStep:
    """Pending-input states. No stored row means NONE."""
    NONE = "none"
    AWAITING_USERNAME = "awaiting_username"
    AWAITING_CONFESSION = "awaiting_confession"
    AWAITING_COMMENT = "awaiting_comment"
    AWAITING_BIO = "awaiting_bio"
    AWAITING_REJECTION_REASON = "awaiting_rejection_reason"


@dataclass(frozen=True)
class PendingInteraction:
    state: str
    context: dict = field(default_factory=dict)


Completion = Callable[..., Awaitable[None]]


@dataclass(frozen=True)
class _Registration:
    handler: Completion
    # re-arm the step when the input fails validation
    keep_on_invalid: bool = False


class ConversationStateMachine:
    def __init__(self, store):
        self.store = store
        self._completions: Dict[str, _Registration] = {}

    def register(self, state: str, handler: Completion, keep_on_invalid: bool = False) -> None:
        self._completions[state] = _Registration(handler, keep_on_invalid)

    # ------------------------------------------------------------------
    # storage
    # ------------------------------------------------------------------

    def get_state(self, user_id: int) -> Optional[PendingInteraction]:
        record = self.store.get("user_states", user_id)
        if not record:
            return None
        return PendingInteraction(record["state"], record.get("payload") or {})

    def set_state(self, user_id: int, state: str, context: Optional[dict] = None) -> None:
        logger.info(f"[FSM] user_id={user_id} -> {state}")
        self.store.set("user_states", user_id, {"state": state, "payload": context or {}})

    def clear_state(self, user_id: int) -> None:
        self.store.delete("user_states", user_id)

    def claim(self, user_id: int) -> Optional[PendingInteraction]:
        """Remove and return the armed step. None if nothing was armed or another message got it first."""
        record = self.store.get("user_states", user_id)
        if not record:
            return None
        if not self.store.delete("user_states", user_id, expected={"version": record["version"]}):
            logger.info(f"[FSM] user_id={user_id} step {record['state']} consumed concurrently")
            return None
        return PendingInteraction(record["state"], record.get("payload") or {})

    # ------------------------------------------------------------------
    # completion
    # ------------------------------------------------------------------

    async def complete(self, user_id: int, event) -> bool:
        """
        Route `event` to the completion of the armed step.

        Returns False when no step was armed, so the caller can fall through
        to normal command handling. Errors from the completion propagate.
        """
        pending = self.claim(user_id)
        if pending is None:
            return False

        registration = self._completions.get(pending.state)
        if registration is None:
            logger.warning(f"[FSM] user_id={user_id} had unknown step {pending.state}, dropped")
            return False

        try:
            await registration.handler(event, pending.context)
        except ValidationFailed:
            if registration.keep_on_invalid:
                self.set_state(user_id, pending.state, pending.context)
            raise
        return True
