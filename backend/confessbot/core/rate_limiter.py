"""
Cooldown guard and sliding-window comment limiter.

Both are store-backed so every stateless request handler sees the same
counters. Cooldown is a single "last action" stamp per action kind (O(1)
check, used for confession submission). The comment limiter keeps a list of
timestamps per user and counts the ones inside the trailing window; the list
is pruned to the window on every write so it never grows past the limit.
"""
import logging
from typing import Optional

from confessbot.core.clock import Clock, system_clock_ms

logger = logging.getLogger(__name__)


class RateLimiter:
    """Per-user cooldowns and comment rate limiting."""

    def __init__(self, store, clock: Clock = system_clock_ms):
        """
        Args:
            store: RecordStore holding the `cooldowns` and `rate_limits` collections
            clock: epoch-millisecond time source
        """
        self.store = store
        self.clock = clock

    # ------------------------------------------------------------------
    # cooldown
    # ------------------------------------------------------------------

    def last_action(self, user_id: int, action: str) -> Optional[int]:
        record = self.store.get("cooldowns", user_id)
        if not record:
            return None
        return (record.get("actions") or {}).get(action)

    def check_cooldown(self, user_id: int, action: str = "confession", window_ms: int = 60_000) -> bool:
        """True iff no `action` was stamped within the last `window_ms`."""
        last = self.last_action(user_id, action)
        if last is None:
            return True
        return self.clock() - last >= window_ms

    def remaining_cooldown_seconds(self, user_id: int, action: str = "confession", window_ms: int = 60_000) -> int:
        last = self.last_action(user_id, action)
        if last is None:
            return 0
        remaining_ms = window_ms - (self.clock() - last)
        if remaining_ms <= 0:
            return 0
        return -(-remaining_ms // 1000)  # ceil

    def set_cooldown(self, user_id: int, action: str = "confession") -> None:
        """Stamp `action` with the current time, leaving other kinds untouched."""
        now = self.clock()
        self.store.mutate(
            "cooldowns",
            user_id,
            lambda record: {"actions": {**(record.get("actions") or {}), action: now}},
            default={"actions": {}},
        )

    # ------------------------------------------------------------------
    # comment sliding window
    # ------------------------------------------------------------------

    def check_comment_rate_limit(self, user_id: int, window_ms: int = 30_000, max_count: int = 3) -> bool:
        """True iff fewer than `max_count` comments were recorded in the trailing window."""
        record = self.store.get("rate_limits", user_id)
        if not record:
            return True
        now = self.clock()
        recent = [ts for ts in (record.get("comment_timestamps") or []) if now - ts < window_ms]
        return len(recent) < max_count

    def record_comment(self, user_id: int, window_ms: int = 30_000) -> None:
        """
        Append the current time to the user's comment timestamps.

        Failures are logged and swallowed: a missed record fails open and the
        user may exceed the limit once.
        """
        now = self.clock()
        try:
            self.store.array_append(
                "rate_limits",
                user_id,
                "comment_timestamps",
                now,
                keep=lambda ts: now - ts < window_ms,
                create_missing=True,
            )
        except Exception as e:
            logger.error(f"Rate limit recording error for user {user_id}: {e}", exc_info=True)
