"""
User profiles: lazy creation, display name, bio, daily check-in,
notification preferences and admin blocking.
"""
import logging
from datetime import timedelta
from typing import NamedTuple, Optional

from confessbot.core.audit import AuditLog
from confessbot.core.clock import Clock, as_utc, ms_to_datetime, system_clock_ms
from confessbot.core.config import BotConfig
from confessbot.core.exceptions import BusinessError, StoreConflictError
from confessbot.models.user_profile import NOTIFICATION_KINDS, default_comment_settings, default_notifications
from confessbot.services.text_utils import USERNAME_PATTERN, sanitize_input

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"


class CheckinResult(NamedTuple):
    streak: int
    already_checked_in: bool
    reputation_gained: int


def display_name(profile: Optional[dict]) -> str:
    if not profile:
        return ANONYMOUS
    return profile.get("username") or ANONYMOUS


class ProfileService:
    def __init__(self, store, notifier, config: BotConfig, clock: Clock = system_clock_ms):
        self.store = store
        self.notifier = notifier
        self.config = config
        self.clock = clock

    # ------------------------------------------------------------------
    # lookup / lazy creation
    # ------------------------------------------------------------------

    def get(self, user_id: int) -> Optional[dict]:
        return self.store.get("users", user_id)

    def require(self, user_id: int) -> dict:
        profile = self.get(user_id)
        if not profile:
            raise BusinessError.not_found("User", f"telegram_id={user_id}")
        return profile

    def get_or_create(self, user_id: int, first_name: Optional[str] = None, last_name: Optional[str] = None) -> dict:
        profile = self.get(user_id)
        if profile:
            return profile
        logger.info(f"[Profile] Creating profile for user_id={user_id}")
        return self.store.mutate(
            "users",
            user_id,
            lambda existing: {},
            default={
                "first_name": first_name,
                "last_name": last_name,
                "reputation": 0,
                "daily_streak": 0,
                "total_confessions": 0,
                "comment_count": 0,
                "followers": [],
                "following": [],
                "is_active": True,
                "notifications": default_notifications(),
                "comment_settings": default_comment_settings(),
                "joined_at": ms_to_datetime(self.clock()),
            },
        )

    def is_blocked(self, profile: dict) -> bool:
        return profile.get("is_active") is False

    # ------------------------------------------------------------------
    # display name / bio
    # ------------------------------------------------------------------

    def set_username(self, user_id: int, text: str) -> str:
        """
        Validate and store a display name.

        Raises ValidationFailed for a bad format or a name held by someone
        else; the caller keeps the prompt armed in both cases.
        """
        name = (text or "").strip()
        cfg = self.config
        if (
            len(name) < cfg.username_min_length
            or len(name) > cfg.username_max_length
            or not USERNAME_PATTERN.match(name)
        ):
            raise BusinessError.bad_request(
                f"❌ Invalid username. Use {cfg.username_min_length}-{cfg.username_max_length} "
                "characters (letters, numbers, underscores only)."
            )
        if name.lower() == ANONYMOUS.lower():
            raise BusinessError.bad_request("❌ That name is reserved. Choose another one.")

        holders = self.store.query("users", {"username": name}, limit=1)
        if holders and holders[0]["telegram_id"] != user_id:
            raise BusinessError.bad_request("❌ Username already taken. Choose another one.")

        try:
            self.store.update("users", user_id, {"username": name})
        except StoreConflictError:
            # unique index caught a concurrent claim of the same name
            raise BusinessError.bad_request("❌ Username already taken. Choose another one.")
        logger.info(f"[Profile] user_id={user_id} set username={name}")
        return name

    def set_bio(self, user_id: int, text: str) -> str:
        bio = sanitize_input(text)
        if len(bio) > self.config.bio_max_length:
            raise BusinessError.bad_request(
                f"❌ Bio too long. Maximum {self.config.bio_max_length} characters."
            )
        self.store.update("users", user_id, {"bio": bio or None})
        return bio

    # ------------------------------------------------------------------
    # daily check-in
    # ------------------------------------------------------------------

    def checkin(self, user_id: int) -> CheckinResult:
        """Once per UTC day. Streak continues only from yesterday's check-in."""
        now = ms_to_datetime(self.clock())
        today = now.date()
        bonus = self.config.checkin_reputation
        outcome = {}

        def _checkin(profile: dict) -> dict:
            last = profile.get("last_checkin")
            last_day = as_utc(last).date() if last else None
            if last_day == today:
                outcome["result"] = CheckinResult(profile.get("daily_streak") or 0, True, 0)
                return {}
            streak = 1
            if last_day == today - timedelta(days=1):
                streak = (profile.get("daily_streak") or 0) + 1
            outcome["result"] = CheckinResult(streak, False, bonus)
            return {
                "daily_streak": streak,
                "last_checkin": now,
                "reputation": (profile.get("reputation") or 0) + bonus,
            }

        if self.store.mutate("users", user_id, _checkin) is None:
            raise BusinessError.not_found("User", f"telegram_id={user_id}")
        return outcome["result"]

    # ------------------------------------------------------------------
    # notifications
    # ------------------------------------------------------------------

    def notification_preferences(self, user_id: int) -> dict:
        profile = self.require(user_id)
        return {**default_notifications(), **(profile.get("notifications") or {})}

    def toggle_notification(self, user_id: int, kind: str) -> bool:
        if kind not in NOTIFICATION_KINDS:
            raise BusinessError.bad_request(f"❌ Unknown notification setting: {kind}")
        outcome = {}

        def _toggle(profile: dict) -> dict:
            preferences = {**default_notifications(), **(profile.get("notifications") or {})}
            preferences[kind] = not preferences[kind]
            outcome["enabled"] = preferences[kind]
            return {"notifications": preferences}

        if self.store.mutate("users", user_id, _toggle) is None:
            raise BusinessError.not_found("User", f"telegram_id={user_id}")
        return outcome["enabled"]

    async def notify(self, user_id: int, text: str, kind: str) -> bool:
        """Send `text` unless the user switched `kind` notifications off. Best-effort."""
        try:
            profile = self.get(user_id)
        except Exception as e:
            logger.error(f"Notification lookup failed for {user_id}: {e}", exc_info=True)
            return False
        preferences = (profile or {}).get("notifications") or {}
        if preferences.get(kind) is False:
            logger.debug(f"[Notify] user_id={user_id} muted {kind}")
            return False
        return await self.notifier.send(user_id, text)

    # ------------------------------------------------------------------
    # blocking
    # ------------------------------------------------------------------

    def set_active(self, admin_id: int, target_id: int, active: bool) -> dict:
        action = "unblock" if active else "block"
        if not self.config.is_admin(admin_id):
            AuditLog.log_access_denied(action, "user", target_id, admin_id, "Not an admin")
            raise BusinessError.forbidden(f"user {admin_id} tried to {action} {target_id}")
        if not self.store.update("users", target_id, {"is_active": active}):
            raise BusinessError.not_found("User", f"telegram_id={target_id}")
        AuditLog.log_action(action, "user", target_id, admin_id)
        return self.require(target_id)
