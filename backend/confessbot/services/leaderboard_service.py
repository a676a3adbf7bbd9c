"""Read-only rankings and aggregate counts."""
import logging
from collections import Counter
from typing import List, Optional, Tuple

from confessbot.models.confession import ConfessionStatus

logger = logging.getLogger(__name__)


class LeaderboardService:
    def __init__(self, store):
        self.store = store

    def trending(self, limit: int = 5) -> List[dict]:
        return self.store.query(
            "confessions",
            {"status": ConfessionStatus.APPROVED},
            order_by="total_comments",
            descending=True,
            limit=limit,
        )

    def popular_hashtags(self, sample: int = 50, limit: int = 10) -> List[Tuple[str, int]]:
        """Most used tags over the `sample` newest approved confessions."""
        recent = self.store.query(
            "confessions",
            {"status": ConfessionStatus.APPROVED},
            order_by="created_at",
            descending=True,
            limit=sample,
        )
        counts = Counter(tag for confession in recent for tag in (confession.get("hashtags") or []))
        return counts.most_common(limit)

    def best_commenters(self, limit: int = 10) -> List[dict]:
        return self.store.query(
            "users", [("comment_count", ">", 0)], order_by="comment_count", descending=True, limit=limit
        )

    def rank_of(self, user_id: int) -> Optional[int]:
        """1-based rank by comment count; None for unknown users."""
        profile = self.store.get("users", user_id)
        if not profile:
            return None
        ahead = self.store.count("users", [("comment_count", ">", profile.get("comment_count") or 0)])
        return ahead + 1

    def browse_users(self, viewer_id: int, limit: int = 10) -> List[dict]:
        return self.store.query(
            "users",
            [("username", "!=", None), ("is_active", "==", True), ("telegram_id", "!=", viewer_id)],
            order_by="reputation",
            descending=True,
            limit=limit,
        )

    def totals(self) -> dict:
        return {
            "users": self.store.count("users"),
            "confessions": self.store.count("confessions"),
            "comments": self.store.total("comments", "total_comments"),
        }

    def stats(self) -> dict:
        """Dashboard numbers for admins."""
        stats = self.totals()
        for status in (ConfessionStatus.PENDING, ConfessionStatus.APPROVED, ConfessionStatus.REJECTED):
            stats[status] = self.store.count("confessions", {"status": status})
        stats["blocked_users"] = self.store.count("users", {"is_active": False})
        return stats
