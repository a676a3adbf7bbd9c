"""Admin-only handlers: dashboard, review queue, approve/reject, block/unblock."""
import logging
from typing import Optional

from confessbot.core.config import BotConfig
from confessbot.core.exceptions import BusinessError
from confessbot.schemas.telegram import InboundEvent
from confessbot.services.confession_service import ConfessionService
from confessbot.services.leaderboard_service import LeaderboardService
from confessbot.services.profile_service import ProfileService, display_name
from confessbot.services.text_utils import truncate
from confessbot.telegram.handlers import parse_user_id
from confessbot.telegram.keyboards import admin_dashboard_keyboard, admin_review_keyboard, back_keyboard
from confessbot.telegram.notifier import Notifier
from confessbot.telegram.state_machine import ConversationStateMachine, ConversationStep

logger = logging.getLogger(__name__)


class AdminHandlers:
    def __init__(
        self,
        notifier: Notifier,
        config: BotConfig,
        states: ConversationStateMachine,
        profiles: ProfileService,
        confessions: ConfessionService,
        leaderboard: LeaderboardService,
    ):
        self.notifier = notifier
        self.config = config
        self.states = states
        self.profiles = profiles
        self.confessions = confessions
        self.leaderboard = leaderboard

    def _require_admin(self, event: InboundEvent, action: str) -> None:
        if not self.config.is_admin(event.user_id):
            raise BusinessError.forbidden(f"user {event.user_id} tried {action}")

    async def dashboard(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        self._require_admin(event, "admin dashboard")
        stats = self.leaderboard.stats()
        await self.notifier.send(
            event.chat_id,
            "🔐 Admin Dashboard\n\n"
            f"Total Users: {stats['users']}\n"
            f"Pending Confessions: {stats['pending']}\n"
            f"Approved Confessions: {stats['approved']}\n"
            f"Rejected Confessions: {stats['rejected']}",
            admin_dashboard_keyboard(),
        )
        return None

    async def stats(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        self._require_admin(event, "bot stats")
        stats = self.leaderboard.stats()
        await self.notifier.send(
            event.chat_id,
            "📊 Bot Statistics\n\n"
            f"👥 Users: {stats['users']} ({stats['blocked_users']} blocked)\n"
            f"📝 Confessions: {stats['confessions']}\n"
            f"   ⏳ Pending: {stats['pending']}\n"
            f"   ✅ Approved: {stats['approved']}\n"
            f"   ❌ Rejected: {stats['rejected']}\n"
            f"💬 Comments: {stats['comments']}",
            back_keyboard(),
        )
        return None

    async def review_queue(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        self._require_admin(event, "review queue")
        pending = self.confessions.pending_queue()
        if not pending:
            await self.notifier.send(event.chat_id, "✅ No pending confessions.", back_keyboard())
            return None
        for confession in pending:
            await self.notifier.send(
                event.chat_id,
                f"📝 Confession #{confession['confession_number']}\n\n"
                f"{truncate(confession['text'], self.config.admin_preview_length)}",
                admin_review_keyboard(confession["confession_id"]),
            )
        return f"{len(pending)} pending"

    async def approve(self, event: InboundEvent, confession_id: str) -> Optional[str]:
        confession = await self.confessions.approve(confession_id, event.user_id)
        await self.notifier.send(
            event.chat_id, f"✅ Confession #{confession['confession_number']} approved and posted."
        )
        return "✅ Approved"

    async def request_rejection(self, event: InboundEvent, confession_id: str) -> Optional[str]:
        self.confessions.require_admin(event.user_id, "reject", confession_id)
        confession = self.confessions.require_pending(confession_id)
        self.states.set_state(
            event.user_id,
            ConversationStep.AWAITING_REJECTION_REASON,
            {"confession_id": confession_id, "confession_number": confession["confession_number"]},
        )
        await self.notifier.send(
            event.chat_id,
            f"📝 Send the reason for rejecting confession #{confession['confession_number']}:",
        )
        return "Reason requested"

    async def complete_rejection(self, event: InboundEvent, context: dict) -> None:
        confession_id = context.get("confession_id")
        if not confession_id:
            raise BusinessError.not_found("Confession", "rejection state without confession_id")
        confession = await self.confessions.reject(confession_id, event.user_id, event.text)
        await self.notifier.send(
            event.chat_id, f"❌ Confession #{confession['confession_number']} rejected."
        )

    async def _set_active(self, event: InboundEvent, arg: Optional[str], active: bool) -> None:
        if not arg:
            self._require_admin(event, "block" if not active else "unblock")
            command = "unblock" if active else "block"
            raise BusinessError.bad_request(f"Usage: /{command} <user_id>")
        profile = self.profiles.set_active(event.user_id, parse_user_id(arg), active)
        verb = "unblocked" if active else "blocked"
        await self.notifier.send(event.chat_id, f"✅ User {display_name(profile)} ({profile['telegram_id']}) {verb}.")

    async def block(self, event: InboundEvent, arg: Optional[str] = None) -> None:
        await self._set_active(event, arg, active=False)

    async def unblock(self, event: InboundEvent, arg: Optional[str] = None) -> None:
        await self._set_active(event, arg, active=True)
