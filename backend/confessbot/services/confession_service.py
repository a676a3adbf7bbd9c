"""
Confession lifecycle: submission, admin review, publication.

Status flow is pending -> approved | rejected, and each confession is
decided exactly once. The transition is a conditional UPDATE on
`status == pending`, so two admins pressing buttons at the same moment
cannot both win.
"""
import logging
from typing import List, Optional

from confessbot.core.audit import AuditLog
from confessbot.core.clock import Clock, ms_to_datetime, system_clock_ms
from confessbot.core.config import BotConfig
from confessbot.core.exceptions import BusinessError
from confessbot.core.rate_limiter import RateLimiter
from confessbot.models.confession import ConfessionStatus
from confessbot.services.profile_service import ProfileService
from confessbot.services.sequence import SequenceCounter
from confessbot.services.text_utils import extract_hashtags, sanitize_input, truncate
from confessbot.telegram.keyboards import admin_review_keyboard, channel_post_keyboard

logger = logging.getLogger(__name__)

COOLDOWN_ACTION = "confession"


class ConfessionService:
    def __init__(
        self,
        store,
        notifier,
        profiles: ProfileService,
        rate_limiter: RateLimiter,
        sequence: SequenceCounter,
        config: BotConfig,
        clock: Clock = system_clock_ms,
    ):
        self.store = store
        self.notifier = notifier
        self.profiles = profiles
        self.rate_limiter = rate_limiter
        self.sequence = sequence
        self.config = config
        self.clock = clock

    # ------------------------------------------------------------------
    # lookup
    # ------------------------------------------------------------------

    def get(self, confession_id: str) -> Optional[dict]:
        return self.store.get("confessions", confession_id)

    def require(self, confession_id: str) -> dict:
        confession = self.get(confession_id)
        if not confession:
            raise BusinessError.not_found("Confession", f"id={confession_id}")
        return confession

    def pending_queue(self, limit: int = 10) -> List[dict]:
        """Oldest pending first."""
        return self.store.query(
            "confessions", {"status": ConfessionStatus.PENDING}, order_by="created_at", limit=limit
        )

    def for_user(self, user_id: int, limit: int = 10) -> List[dict]:
        return self.store.query(
            "confessions", {"user_id": user_id}, order_by="created_at", descending=True, limit=limit
        )

    # ------------------------------------------------------------------
    # submission
    # ------------------------------------------------------------------

    def ensure_cooldown_elapsed(self, user_id: int) -> None:
        window = self.config.confession_cooldown_ms
        if not self.rate_limiter.check_cooldown(user_id, COOLDOWN_ACTION, window):
            wait = self.rate_limiter.remaining_cooldown_seconds(user_id, COOLDOWN_ACTION, window)
            raise BusinessError.cooldown(max(wait, 1))

    def validate_text(self, raw_text: str) -> str:
        """Return the cleaned text, or raise ValidationFailed on a bad length."""
        cfg = self.config
        trimmed = (raw_text or "").strip()
        if len(trimmed) > cfg.confession_max_length:
            raise BusinessError.bad_request(
                f"❌ Confession too long. Maximum {cfg.confession_max_length} characters."
            )
        cleaned = sanitize_input(trimmed)
        if len(trimmed) < cfg.confession_min_length or len(cleaned) < cfg.confession_min_length:
            raise BusinessError.bad_request(
                f"❌ Confession too short. Minimum {cfg.confession_min_length} characters."
            )
        return cleaned

    async def submit(self, user_id: int, raw_text: str) -> dict:
        """
        Persist a new pending confession and alert the admins.

        Nothing is written unless a number was drawn from the sequence
        counter; a counter failure propagates to the caller.
        """
        self.ensure_cooldown_elapsed(user_id)
        text = self.validate_text(raw_text)

        number = self.sequence.increment()
        now = self.clock()
        confession_id = f"confess_{user_id}_{now}_{number}"
        confession = self.store.set(
            "confessions",
            confession_id,
            {
                "confession_number": number,
                "user_id": user_id,
                "text": text,
                "status": ConfessionStatus.PENDING,
                "hashtags": extract_hashtags(text),
                "total_comments": 0,
                "likes": 0,
                "created_at": ms_to_datetime(now),
            },
        )
        logger.info(f"[Confession] #{number} submitted by user_id={user_id} ({confession_id})")

        if self.store.run_atomic_increment("users", user_id, "total_confessions") is None:
            logger.warning(f"[Confession] no profile for user_id={user_id}, total_confessions not counted")
        self.rate_limiter.set_cooldown(user_id, COOLDOWN_ACTION)

        await self._alert_admins(confession)
        return confession

    async def _alert_admins(self, confession: dict) -> None:
        if not self.config.admin_ids:
            logger.warning("[Confession] ADMIN_IDS empty, nobody will review submissions")
            return
        text = (
            f"📝 New Confession #{confession['confession_number']}\n\n"
            f"{truncate(confession['text'], self.config.admin_preview_length)}"
        )
        keyboard = admin_review_keyboard(confession["confession_id"])
        for admin_id in sorted(self.config.admin_ids):
            await self.notifier.send(admin_id, text, keyboard)

    # ------------------------------------------------------------------
    # moderation
    # ------------------------------------------------------------------

    def require_admin(self, user_id: int, action: str, confession_id: str) -> None:
        if not self.config.is_admin(user_id):
            AuditLog.log_access_denied(action, "confession", confession_id, user_id, "Not an admin")
            raise BusinessError.forbidden(f"user {user_id} tried to {action} {confession_id}")

    def require_pending(self, confession_id: str) -> dict:
        confession = self.require(confession_id)
        if confession["status"] != ConfessionStatus.PENDING:
            raise BusinessError.already_decided(confession["confession_number"], confession["status"])
        return confession

    def _transition(self, confession: dict, fields: dict) -> dict:
        won = self.store.compare_and_update(
            "confessions",
            confession["confession_id"],
            {"status": ConfessionStatus.PENDING},
            fields,
        )
        if not won:
            latest = self.require(confession["confession_id"])
            raise BusinessError.already_decided(latest["confession_number"], latest["status"])
        return {**confession, **fields}

    async def approve(self, confession_id: str, admin_id: int) -> dict:
        self.require_admin(admin_id, "approve", confession_id)
        confession = self.require_pending(confession_id)
        now = ms_to_datetime(self.clock())
        confession = self._transition(
            confession,
            {"status": ConfessionStatus.APPROVED, "approved_at": now, "decided_by": admin_id},
        )
        number = confession["confession_number"]
        AuditLog.log_action("approve", "confession", confession_id, admin_id)
        logger.info(f"[Confession] #{number} approved by admin_id={admin_id}")

        self.store.run_atomic_increment("users", confession["user_id"], "reputation", self.config.approval_reputation)
        # create-if-missing, never overwrite an existing thread
        self.store.mutate(
            "comments",
            confession_id,
            lambda thread: {},
            default={
                "confession_number": number,
                "confession_text": confession["text"],
                "comments": [],
                "total_comments": 0,
            },
        )

        await self._publish(confession)
        await self.profiles.notify(
            confession["user_id"],
            f"✅ Your confession #{number} has been approved and posted!",
            "new_confession",
        )
        return confession

    async def _publish(self, confession: dict) -> bool:
        if not self.config.channel_id:
            logger.error(f"[Confession] CHANNEL_ID not set, #{confession['confession_number']} not posted")
            return False
        text = (
            f"#{confession['confession_number']}\n\n"
            f"{confession['text']}\n\n"
            "💬 Comment on this confession:"
        )
        keyboard = channel_post_keyboard(self.config.bot_username, confession["confession_id"])
        return await self.notifier.send(self.config.channel_id, text, keyboard)

    async def reject(self, confession_id: str, admin_id: int, reason: str) -> dict:
        self.require_admin(admin_id, "reject", confession_id)
        reason = sanitize_input(reason)
        if not reason:
            raise BusinessError.bad_request("❌ Please provide a reason for rejection.")
        confession = self.require_pending(confession_id)
        now = ms_to_datetime(self.clock())
        confession = self._transition(
            confession,
            {
                "status": ConfessionStatus.REJECTED,
                "rejected_at": now,
                "rejection_reason": reason,
                "decided_by": admin_id,
            },
        )
        number = confession["confession_number"]
        AuditLog.log_action("reject", "confession", confession_id, admin_id, changes={"reason": reason})
        logger.info(f"[Confession] #{number} rejected by admin_id={admin_id}")

        await self.profiles.notify(
            confession["user_id"],
            f"❌ Your confession #{number} was not approved.\n\nReason: {reason}",
            "new_confession",
        )
        return confession

    def status_counts(self) -> dict:
        return {
            status: self.store.count("confessions", {"status": status})
            for status in (ConfessionStatus.PENDING, ConfessionStatus.APPROVED, ConfessionStatus.REJECTED)
        }
