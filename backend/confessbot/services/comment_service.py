"""Comments on approved confessions and paginated thread views."""
import logging
import math
from dataclasses import dataclass, field
from typing import List

from confessbot.core.clock import Clock, ms_to_datetime, system_clock_ms
from confessbot.core.config import BotConfig
from confessbot.core.exceptions import BusinessError
from confessbot.core.rate_limiter import RateLimiter
from confessbot.services.profile_service import ProfileService, display_name
from confessbot.services.text_utils import sanitize_input, truncate

logger = logging.getLogger(__name__)


@dataclass
class CommentPage:
    confession_id: str
    confession_number: int
    confession_text: str
    page: int
    total_pages: int
    total_comments: int
    # 1-based position of the first comment on this page
    first_index: int = 1
    comments: List[dict] = field(default_factory=list)


class CommentService:
    def __init__(
        self,
        store,
        profiles: ProfileService,
        rate_limiter: RateLimiter,
        config: BotConfig,
        clock: Clock = system_clock_ms,
    ):
        self.store = store
        self.profiles = profiles
        self.rate_limiter = rate_limiter
        self.config = config
        self.clock = clock

    def get_thread(self, confession_id: str) -> dict:
        thread = self.store.get("comments", confession_id)
        if not thread:
            raise BusinessError.not_found("Confession", f"no thread for {confession_id}")
        return thread

    def ensure_can_comment(self, user_id: int) -> None:
        allowed = self.rate_limiter.check_comment_rate_limit(
            user_id, self.config.comment_window_ms, self.config.comment_max_per_window
        )
        if not allowed:
            raise BusinessError.rate_limit_exceeded()

    async def add_comment(self, confession_id: str, user_id: int, raw_text: str) -> dict:
        text = sanitize_input(raw_text)
        if len(text) < self.config.comment_min_length:
            raise BusinessError.bad_request(
                f"❌ Comment too short. Minimum {self.config.comment_min_length} characters."
            )
        self.ensure_can_comment(user_id)
        self.get_thread(confession_id)

        profile = self.profiles.get(user_id)
        now = self.clock()
        created = ms_to_datetime(now)
        comment = {
            "id": f"comment_{now}_{user_id}",
            "text": text,
            "user_id": user_id,
            "user_name": display_name(profile),
            "timestamp": created.strftime("%Y-%m-%d %H:%M UTC"),
            "created_at": created.isoformat(),
        }

        def _append(thread: dict) -> dict:
            comments = list(thread.get("comments") or []) + [comment]
            return {"comments": comments, "total_comments": len(comments)}

        if self.store.mutate("comments", confession_id, _append) is None:
            raise BusinessError.not_found("Confession", f"thread {confession_id} vanished")
        logger.info(f"[Comment] user_id={user_id} commented on {confession_id}")

        self.store.run_atomic_increment("confessions", confession_id, "total_comments")
        self.store.run_atomic_increment("users", user_id, "comment_count")
        self.store.run_atomic_increment("users", user_id, "reputation", self.config.comment_reputation)
        self.rate_limiter.record_comment(user_id, self.config.comment_window_ms)

        confession = self.store.get("confessions", confession_id)
        if confession and confession["user_id"] != user_id:
            await self.profiles.notify(
                confession["user_id"],
                f"💬 New comment on your confession #{confession['confession_number']}:\n\n{truncate(text, 100)}",
                "new_comment",
            )
        return comment

    def get_page(self, confession_id: str, page: int = 1) -> CommentPage:
        """
        One page of a thread. Pages are 1-based; a page past the end is
        returned empty rather than treated as an error.
        """
        thread = self.get_thread(confession_id)
        per_page = self.config.comments_per_page
        comments = thread.get("comments") or []
        page = max(page, 1)
        start = (page - 1) * per_page
        return CommentPage(
            confession_id=confession_id,
            confession_number=thread["confession_number"],
            confession_text=thread["confession_text"],
            page=page,
            total_pages=math.ceil(len(comments) / per_page),
            total_comments=len(comments),
            first_index=start + 1,
            comments=comments[start:start + per_page],
        )
