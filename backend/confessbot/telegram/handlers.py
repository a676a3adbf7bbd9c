"""
User-facing Telegram handlers.

Each handler takes the normalized InboundEvent (plus the id parsed out of
callback data, where there is one) and talks back through the notifier.
Callback handlers return the text for the button acknowledgement; the
router sends that acknowledgement, handlers never do.

Expected failures are raised as BotError and rendered by the router.
"""
import logging
from typing import Optional

from confessbot.core.config import BotConfig
from confessbot.core.exceptions import BusinessError
from confessbot.schemas.telegram import InboundEvent
from confessbot.services.comment_service import CommentPage, CommentService
from confessbot.services.confession_service import ConfessionService
from confessbot.services.leaderboard_service import LeaderboardService
from confessbot.services.profile_service import ProfileService, display_name
from confessbot.services.social_service import SocialService
from confessbot.services.text_utils import level_for, truncate
from confessbot.telegram.keyboards import (
    BACK_TO_MENU,
    Button,
    Callback,
    after_submission_keyboard,
    back_keyboard,
    inline_keyboard,
    main_menu_keyboard,
    notification_settings_keyboard,
    profile_keyboard,
    thread_keyboard,
    view_profile_keyboard,
)
from confessbot.telegram.notifier import Notifier
from confessbot.telegram.state_machine import ConversationStateMachine, ConversationStep

logger = logging.getLogger(__name__)

DEEP_LINK_COMMENTS = "comments_"

ABOUT_TEXT = (
    "ℹ️ About Us\n\n"
    "This is an anonymous confession platform.\n\n"
    "Features:\n"
    "• Anonymous confessions\n"
    "• Admin approval system\n"
    "• User profiles\n"
    "• Social features\n"
    "• Comment system\n"
    "• Reputation system\n"
    "• Level system\n"
    "• Best commenters\n\n"
    "100% private and secure."
)

RULES_TEXT = (
    "📌 Confession Rules\n\n"
    "✅ Be respectful\n"
    "✅ No personal attacks\n"
    "✅ No spam or ads\n"
    "✅ Keep it anonymous\n"
    "✅ No hate speech\n"
    "✅ No illegal content\n"
    "✅ No harassment\n"
    "✅ Use appropriate hashtags"
)

HELP_TEXT = (
    "ℹ️ Confession Bot Help\n\n"
    "How to Confess:\n"
    "1. Click \"📝 Send Confession\"\n"
    "2. Type your confession\n"
    "3. Wait for admin approval\n"
    "4. See it posted in the channel\n\n"
    "Features:\n"
    "• Anonymous confessions\n"
    "• User profiles with display names\n"
    "• Social features (follow/unfollow)\n"
    "• Reputation and daily check-in\n"
    "• User levels with symbols\n"
    "• Best commenters leaderboard\n\n"
    "Commands:\n"
    "/start - Start the bot\n"
    "/checkin - Daily check-in\n"
    "/help - Show this help\n"
)

ADMIN_HELP_TEXT = (
    "\n⚡ Admin Commands:\n"
    "/admin - Admin panel\n"
    "/block <user_id> - Block a user\n"
    "/unblock <user_id> - Unblock a user\n"
)


def parse_user_id(raw: Optional[str]) -> int:
    try:
        return int((raw or "").strip())
    except ValueError:
        raise BusinessError.bad_request("❌ Invalid user id.")


class UserHandlers:
    def __init__(
        self,
        notifier: Notifier,
        config: BotConfig,
        states: ConversationStateMachine,
        profiles: ProfileService,
        confessions: ConfessionService,
        comments: CommentService,
        social: SocialService,
        leaderboard: LeaderboardService,
    ):
        self.notifier = notifier
        self.config = config
        self.states = states
        self.profiles = profiles
        self.confessions = confessions
        self.comments = comments
        self.social = social
        self.leaderboard = leaderboard

    async def reply(self, event: InboundEvent, text: str, keyboard=None) -> bool:
        return await self.notifier.send(event.chat_id, text, keyboard)

    # ==========================================================================
    # ENTRY / STATIC PAGES
    # ==========================================================================

    async def show_main_menu(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        await self.reply(event, "🏠 Main Menu\n\nChoose an option below:", main_menu_keyboard())
        return None

    async def start(self, event: InboundEvent, arg: Optional[str] = None) -> None:
        """/start, optionally with a `comments_<confession id>` deep link from the channel."""
        if arg and arg.startswith(DEEP_LINK_COMMENTS):
            await self.show_comments(event, arg[len(DEEP_LINK_COMMENTS):], 1)
            return

        profile = self.profiles.get_or_create(event.user_id, event.first_name, event.last_name)
        if not profile.get("username"):
            self.states.set_state(event.user_id, ConversationStep.AWAITING_USERNAME)
            await self.reply(
                event,
                "🤫 Welcome to the Confession Bot!\n\n"
                "Send anonymous confessions, comment and follow other users.\n\n"
                "First, choose a display name (3-20 characters, letters, numbers and underscores):",
            )
            return
        await self.reply(
            event,
            f"👋 Welcome back, {profile['username']}!\n\nChoose an option below:",
            main_menu_keyboard(),
        )

    async def help(self, event: InboundEvent, arg: Optional[str] = None) -> None:
        text = HELP_TEXT
        if self.config.is_admin(event.user_id):
            text += ADMIN_HELP_TEXT
        await self.reply(event, text)

    async def about(self, event: InboundEvent, arg: Optional[str] = None) -> None:
        await self.reply(
            event,
            ABOUT_TEXT,
            inline_keyboard(
                [Button("📝 Send Confession", Callback.SEND_CONFESSION), Button("🔍 Browse Users", Callback.BROWSE_USERS)],
                [BACK_TO_MENU],
            ),
        )

    async def rules(self, event: InboundEvent, arg: Optional[str] = None) -> None:
        await self.reply(
            event,
            RULES_TEXT,
            inline_keyboard(
                [Button("📝 Send Confession", Callback.SEND_CONFESSION), Button("🎯 Daily Check-in", Callback.DAILY_CHECKIN)],
                [BACK_TO_MENU],
            ),
        )

    async def settings(self, event: InboundEvent, arg: Optional[str] = None) -> None:
        await self.reply(
            event,
            "⚙️ Settings\n\n"
            "• Username: set in profile\n"
            "• Bio: set in profile\n"
            "• Notifications: choose what you hear about",
            inline_keyboard(
                [Button("🔔 Notification Settings", Callback.NOTIFICATION_SETTINGS), Button("👤 My Profile", Callback.MY_PROFILE)],
                [BACK_TO_MENU],
            ),
        )

    # ==========================================================================
    # CONFESSIONS
    # ==========================================================================

    async def start_confession(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        self.confessions.ensure_cooldown_elapsed(event.user_id)
        self.states.set_state(event.user_id, ConversationStep.AWAITING_CONFESSION)
        await self.reply(
            event,
            "✍️ Send your confession now.\n\n"
            f"It stays anonymous. {self.config.confession_min_length}-{self.config.confession_max_length} "
            "characters, #hashtags welcome.",
        )
        return None

    async def complete_confession(self, event: InboundEvent, context: dict) -> None:
        confession = await self.confessions.submit(event.user_id, event.text)
        await self.reply(
            event,
            f"✅ Confession #{confession['confession_number']} submitted!\n\n⏳ Pending admin approval.",
            after_submission_keyboard(),
        )

    async def my_confessions(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        mine = self.confessions.for_user(event.user_id)
        if not mine:
            await self.reply(event, "📝 You haven't submitted any confessions yet.", back_keyboard())
            return None
        icons = {"pending": "⏳", "approved": "✅", "rejected": "❌"}
        lines = ["📝 My Confessions\n"]
        for confession in mine:
            lines.append(
                f"{icons.get(confession['status'], '•')} #{confession['confession_number']} "
                f"({confession['status']}, 💬 {confession['total_comments']})\n"
                f"{truncate(confession['text'], 60)}\n"
            )
        await self.reply(event, "\n".join(lines), back_keyboard())
        return None

    # ==========================================================================
    # COMMENTS
    # ==========================================================================

    def _render_page(self, page: CommentPage) -> str:
        lines = [
            f"#{page.confession_number}\n",
            f"{page.confession_text}\n",
            f"💬 Comments ({page.total_comments})",
        ]
        if not page.comments:
            lines.append("\nNo comments here yet. Be the first!")
        for offset, comment in enumerate(page.comments):
            lines.append(
                f"\n{page.first_index + offset}. {comment['text']}\n"
                f"   - {comment['user_name']} · {comment['timestamp']}"
            )
        return "\n".join(lines)

    async def show_comments(self, event: InboundEvent, confession_id: str, page: int = 1) -> Optional[str]:
        comment_page = self.comments.get_page(confession_id, page)
        confession = self.confessions.get(confession_id)
        author = self.profiles.get(confession["user_id"]) if confession else None
        await self.reply(
            event,
            self._render_page(comment_page),
            thread_keyboard(
                confession_id,
                comment_page.page,
                comment_page.total_pages,
                author.get("username") if author else None,
            ),
        )
        return None

    async def comments_page(self, event: InboundEvent, arg: str) -> Optional[str]:
        # confession ids contain underscores, the page number is the last segment
        confession_id, _, raw_page = arg.rpartition("_")
        if not confession_id or not raw_page.isdigit():
            raise BusinessError.bad_request("❌ Invalid page.")
        return await self.show_comments(event, confession_id, int(raw_page))

    async def prompt_comment(self, event: InboundEvent, confession_id: str) -> Optional[str]:
        thread = self.comments.get_thread(confession_id)
        self.comments.ensure_can_comment(event.user_id)
        self.states.set_state(event.user_id, ConversationStep.AWAITING_COMMENT, {"confession_id": confession_id})
        await self.reply(
            event,
            f"💬 Write your comment for confession #{thread['confession_number']}:",
        )
        return "✍️ Type your comment"

    async def complete_comment(self, event: InboundEvent, context: dict) -> None:
        confession_id = context.get("confession_id")
        if not confession_id:
            raise BusinessError.not_found("Confession", "comment state without confession_id")
        await self.comments.add_comment(confession_id, event.user_id, event.text)
        thread = self.comments.get_thread(confession_id)
        await self.reply(
            event,
            f"✅ Comment added to confession #{thread['confession_number']}!",
            inline_keyboard(
                [Button("💬 View Comments", f"{Callback.COMMENTS_PAGE}{confession_id}_1")],
                [BACK_TO_MENU],
            ),
        )

    # ==========================================================================
    # PROFILE
    # ==========================================================================

    async def show_profile(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        profile = self.profiles.get_or_create(event.user_id, event.first_name, event.last_name)
        level = level_for(profile.get("comment_count") or 0)
        text = (
            f"👤 My Profile\n\n"
            f"Name: {display_name(profile)}\n"
            f"Bio: {profile.get('bio') or 'No bio set'}\n"
            f"Level: {level.symbol} {level.name}\n"
            f"⭐ Reputation: {profile.get('reputation') or 0}\n"
            f"🔥 Streak: {profile.get('daily_streak') or 0} days\n"
            f"📝 Confessions: {profile.get('total_confessions') or 0}\n"
            f"💬 Comments: {profile.get('comment_count') or 0}\n"
            f"👥 Followers: {len(profile.get('followers') or [])} · "
            f"Following: {len(profile.get('following') or [])}"
        )
        await self.reply(event, text, profile_keyboard())
        return None

    async def prompt_username(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        self.states.set_state(event.user_id, ConversationStep.AWAITING_USERNAME)
        await self.reply(event, "📝 Send your new display name (3-20 characters, letters, numbers, underscores):")
        return None

    async def complete_username(self, event: InboundEvent, context: dict) -> None:
        name = self.profiles.set_username(event.user_id, event.text)
        await self.reply(event, f"✅ Username set to {name}!", main_menu_keyboard())

    async def prompt_bio(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        self.states.set_state(event.user_id, ConversationStep.AWAITING_BIO)
        await self.reply(event, f"📝 Send your bio (max {self.config.bio_max_length} characters):")
        return None

    async def complete_bio(self, event: InboundEvent, context: dict) -> None:
        self.profiles.set_bio(event.user_id, event.text)
        await self.reply(event, "✅ Bio updated!", profile_keyboard())

    async def daily_checkin(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        self.profiles.get_or_create(event.user_id, event.first_name, event.last_name)
        result = self.profiles.checkin(event.user_id)
        if result.already_checked_in:
            await self.reply(event, f"✅ Already checked in today!\n\n🔥 Streak: {result.streak} days", back_keyboard())
            return "Already checked in"
        await self.reply(
            event,
            f"🎯 Daily check-in complete!\n\n+{result.reputation_gained} ⭐ reputation\n🔥 Streak: {result.streak} days",
            back_keyboard(),
        )
        return None

    async def notification_settings(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        self.profiles.get_or_create(event.user_id, event.first_name, event.last_name)
        preferences = self.profiles.notification_preferences(event.user_id)
        await self.reply(event, "🔔 Notification Settings\n\nTap to switch on or off:", notification_settings_keyboard(preferences))
        return None

    async def toggle_notification(self, event: InboundEvent, kind: str) -> Optional[str]:
        enabled = self.profiles.toggle_notification(event.user_id, kind)
        await self.notification_settings(event)
        return f"{kind.replace('_', ' ').title()} {'on' if enabled else 'off'}"

    # ==========================================================================
    # SOCIAL
    # ==========================================================================

    async def browse_users(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        users = self.leaderboard.browse_users(event.user_id)
        if not users:
            await self.reply(event, "🔍 No other users with a display name yet.", back_keyboard())
            return None
        lines = ["🔍 Browse Users\n"]
        buttons = []
        for user in users:
            level = level_for(user.get("comment_count") or 0)
            lines.append(
                f"• {level.symbol} {user['username']} ({user.get('reputation') or 0}⭐, "
                f"{len(user.get('followers') or [])} followers)\n  {user.get('bio') or 'No bio'}"
            )
            buttons.append([Button(f"👤 View {user['username']}", f"{Callback.VIEW_PROFILE}{user['telegram_id']}")])
        buttons.append([BACK_TO_MENU])
        await self.reply(event, "\n".join(lines), inline_keyboard(*buttons))
        return None

    async def view_profile(self, event: InboundEvent, raw_target: str) -> Optional[str]:
        target = self.profiles.require(parse_user_id(raw_target))
        level = level_for(target.get("comment_count") or 0)
        text = (
            f"👤 {display_name(target)}\n\n"
            f"Bio: {target.get('bio') or 'No bio'}\n"
            f"Level: {level.symbol} {level.name}\n"
            f"⭐ Reputation: {target.get('reputation') or 0}\n"
            f"👥 Followers: {len(target.get('followers') or [])}"
        )
        keyboard = None
        if target["telegram_id"] != event.user_id:
            keyboard = view_profile_keyboard(
                target["telegram_id"], self.social.is_following(event.user_id, target["telegram_id"])
            )
        await self.reply(event, text, keyboard or back_keyboard())
        return None

    async def follow(self, event: InboundEvent, raw_target: str) -> Optional[str]:
        target_id = parse_user_id(raw_target)
        added = await self.social.follow(event.user_id, target_id)
        await self.view_profile(event, raw_target)
        return "✅ Following" if added else "Already following"

    async def unfollow(self, event: InboundEvent, raw_target: str) -> Optional[str]:
        target_id = parse_user_id(raw_target)
        self.social.unfollow(event.user_id, target_id)
        await self.view_profile(event, raw_target)
        return "Unfollowed"

    async def follow_author(self, event: InboundEvent, confession_id: str) -> Optional[str]:
        author = await self.social.follow_author(event.user_id, confession_id)
        return f"✅ Following {display_name(author)}"

    async def _send_people(self, event: InboundEvent, title: str, people: list) -> None:
        if not people:
            await self.reply(event, f"{title}\n\nNobody yet.", back_keyboard())
            return
        lines = [title, ""] + [f"• {display_name(person)} ({person.get('reputation') or 0}⭐)" for person in people]
        await self.reply(event, "\n".join(lines), back_keyboard())

    async def show_followers(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        self.profiles.get_or_create(event.user_id, event.first_name, event.last_name)
        await self._send_people(event, "👥 Your Followers", self.social.followers(event.user_id))
        return None

    async def show_following(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        self.profiles.get_or_create(event.user_id, event.first_name, event.last_name)
        await self._send_people(event, "👥 You Follow", self.social.following(event.user_id))
        return None

    # ==========================================================================
    # RANKINGS
    # ==========================================================================

    async def trending(self, event: InboundEvent, arg: Optional[str] = None) -> None:
        top = self.leaderboard.trending()
        if not top:
            await self.reply(event, "🔥 No trending confessions yet.", back_keyboard())
            return
        lines = ["🔥 Trending Confessions\n"]
        buttons = []
        for confession in top:
            lines.append(
                f"#{confession['confession_number']} (💬 {confession['total_comments']})\n"
                f"{truncate(confession['text'], 80)}\n"
            )
            buttons.append(
                [Button(f"💬 #{confession['confession_number']}", f"{Callback.COMMENTS_PAGE}{confession['confession_id']}_1")]
            )
        buttons.append([BACK_TO_MENU])
        await self.reply(event, "\n".join(lines), inline_keyboard(*buttons))

    async def hashtags(self, event: InboundEvent, arg: Optional[str] = None) -> None:
        tags = self.leaderboard.popular_hashtags()
        if not tags:
            await self.reply(event, "🏷️ No hashtags used yet.", back_keyboard())
            return
        lines = ["🏷️ Popular Hashtags\n"] + [f"{tag} ({count})" for tag, count in tags]
        await self.reply(event, "\n".join(lines), back_keyboard())

    async def best_commenters(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        top = self.leaderboard.best_commenters()
        if not top:
            await self.reply(event, "🏆 No commenters yet.", back_keyboard())
            return None
        lines = ["🏆 Best Commenters\n"]
        for position, user in enumerate(top, start=1):
            level = level_for(user.get("comment_count") or 0)
            lines.append(f"{position}. {level.symbol} {display_name(user)} · {user['comment_count']} comments")
        await self.reply(
            event,
            "\n".join(lines),
            inline_keyboard([Button("📊 My Rank", Callback.VIEW_MY_RANK)], [BACK_TO_MENU]),
        )
        return None

    async def my_rank(self, event: InboundEvent, arg: Optional[str] = None) -> Optional[str]:
        profile = self.profiles.get_or_create(event.user_id, event.first_name, event.last_name)
        rank = self.leaderboard.rank_of(event.user_id)
        level = level_for(profile.get("comment_count") or 0)
        await self.reply(
            event,
            f"📊 Your Rank: #{rank}\n\n💬 Comments: {profile.get('comment_count') or 0}\n"
            f"Level: {level.symbol} {level.name}",
            back_keyboard(),
        )
        return None
