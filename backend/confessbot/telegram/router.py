"""
Command / event router. Entry point for every inbound Telegram update.

Classification order for a text message:
    1. armed conversation step (the message completes it, whatever it says)
    2. slash command
    3. main-menu label
    4. anything else -> main menu

Button presses are matched against exact callback ids first, then against
id prefixes, and are acknowledged exactly once.

Nothing escapes `handle`: expected failures become the BotError's message,
anything else is logged and answered with a generic failure.
"""
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from confessbot.core.clock import Clock, system_clock_ms
from confessbot.core.config import BotConfig
from confessbot.core.exceptions import GENERIC_CALLBACK_FAILURE, GENERIC_FAILURE, BotError, BusinessError
from confessbot.core.rate_limiter import RateLimiter
from confessbot.schemas.telegram import InboundEvent
from confessbot.services.comment_service import CommentService
from confessbot.services.confession_service import ConfessionService
from confessbot.services.leaderboard_service import LeaderboardService
from confessbot.services.profile_service import ProfileService
from confessbot.services.sequence import SequenceCounter
from confessbot.services.social_service import SocialService
from confessbot.telegram.admin_handlers import AdminHandlers
from confessbot.telegram.handlers import UserHandlers
from confessbot.telegram.keyboards import Callback, MenuLabel
from confessbot.telegram.notifier import Notifier
from confessbot.telegram.state_machine import ConversationStateMachine, ConversationStep

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[Optional[str]]]


class EventRouter:
    def __init__(
        self,
        notifier: Notifier,
        config: BotConfig,
        states: ConversationStateMachine,
        profiles: ProfileService,
        users: UserHandlers,
        admin: AdminHandlers,
    ):
        self.notifier = notifier
        self.config = config
        self.states = states
        self.profiles = profiles

        self.commands: Dict[str, Handler] = {
            "/start": users.start,
            "/help": users.help,
            "/checkin": users.daily_checkin,
            "/admin": admin.dashboard,
            "/block": admin.block,
            "/unblock": admin.unblock,
        }
        self.menu_labels: Dict[str, Handler] = {
            MenuLabel.SEND_CONFESSION: users.start_confession,
            MenuLabel.MY_PROFILE: users.show_profile,
            MenuLabel.TRENDING: users.trending,
            MenuLabel.DAILY_CHECKIN: users.daily_checkin,
            MenuLabel.HASHTAGS: users.hashtags,
            MenuLabel.BEST_COMMENTERS: users.best_commenters,
            MenuLabel.SETTINGS: users.settings,
            MenuLabel.ABOUT: users.about,
            MenuLabel.BROWSE_USERS: users.browse_users,
            MenuLabel.RULES: users.rules,
        }
        self.exact_callbacks: Dict[str, Handler] = {
            Callback.SEND_CONFESSION: users.start_confession,
            Callback.MY_PROFILE: users.show_profile,
            Callback.BACK_TO_MENU: users.show_main_menu,
            Callback.DAILY_CHECKIN: users.daily_checkin,
            Callback.SET_USERNAME: users.prompt_username,
            Callback.SET_BIO: users.prompt_bio,
            Callback.SHOW_FOLLOWERS: users.show_followers,
            Callback.SHOW_FOLLOWING: users.show_following,
            Callback.BROWSE_USERS: users.browse_users,
            Callback.MY_CONFESSIONS: users.my_confessions,
            Callback.VIEW_RANKINGS: users.best_commenters,
            Callback.VIEW_MY_RANK: users.my_rank,
            Callback.NOTIFICATION_SETTINGS: users.notification_settings,
            Callback.ADMIN_MENU: admin.dashboard,
            Callback.REVIEW_CONFESSIONS: admin.review_queue,
            Callback.BOT_STATS: admin.stats,
        }
        # order matters: follow_author_ must be tried before follow_
        self.prefix_callbacks: List[Tuple[str, Handler]] = [
            (Callback.APPROVE, admin.approve),
            (Callback.REJECT, admin.request_rejection),
            (Callback.ADD_COMMENT, users.prompt_comment),
            (Callback.COMMENTS_PAGE, users.comments_page),
            (Callback.VIEW_PROFILE, users.view_profile),
            (Callback.FOLLOW_AUTHOR, users.follow_author),
            (Callback.UNFOLLOW, users.unfollow),
            (Callback.FOLLOW, users.follow),
            (Callback.TOGGLE_NOTIFICATION, users.toggle_notification),
        ]
        self.fallback: Handler = users.show_main_menu

        states.register(ConversationStep.AWAITING_USERNAME, users.complete_username, keep_on_invalid=True)
        states.register(ConversationStep.AWAITING_BIO, users.complete_bio, keep_on_invalid=True)
        states.register(ConversationStep.AWAITING_CONFESSION, users.complete_confession)
        states.register(ConversationStep.AWAITING_COMMENT, users.complete_comment)
        states.register(ConversationStep.AWAITING_REJECTION_REASON, admin.complete_rejection, keep_on_invalid=True)

    # ------------------------------------------------------------------
    # classification
    # ------------------------------------------------------------------

    def match_callback(self, data: str) -> Tuple[Optional[Handler], Optional[str]]:
        handler = self.exact_callbacks.get(data)
        if handler is not None:
            return handler, None
        for prefix, handler in self.prefix_callbacks:
            if data.startswith(prefix) and len(data) > len(prefix):
                return handler, data[len(prefix):]
        return None, None

    def match_command(self, text: str) -> Tuple[Optional[Handler], Optional[str]]:
        command, _, arg = text.strip().partition(" ")
        # "/start@MyBot" in group chats
        command = command.split("@", 1)[0].lower()
        return self.commands.get(command), (arg.strip() or None)

    def _ensure_not_blocked(self, event: InboundEvent) -> None:
        profile = self.profiles.get_or_create(event.user_id, event.first_name, event.last_name)
        # admins cannot lock themselves out
        if self.profiles.is_blocked(profile) and not self.config.is_admin(event.user_id):
            raise BusinessError.blocked(event.user_id)

    # ------------------------------------------------------------------
    # dispatch
    # ------------------------------------------------------------------

    async def handle(self, event: InboundEvent) -> None:
        if event.is_callback:
            await self._handle_callback(event)
        else:
            await self._handle_message(event)

    async def _handle_message(self, event: InboundEvent) -> None:
        if not event.text:
            return
        try:
            self._ensure_not_blocked(event)
            if await self.states.complete(event.user_id, event):
                return

            if event.text.startswith("/"):
                handler, arg = self.match_command(event.text)
                if handler is not None:
                    await handler(event, arg)
                    return
                logger.info(f"[Router] unknown command from user_id={event.user_id}: {event.text.split()[0]}")
                await self.fallback(event)
                return

            handler = self.menu_labels.get(event.text.strip())
            await (handler or self.fallback)(event)
        except BotError as e:
            await self.notifier.send(event.chat_id, e.user_message)
        except Exception as e:
            logger.exception(f"[Router] message from user_id={event.user_id} failed: {e}")
            await self.notifier.send(event.chat_id, GENERIC_FAILURE)

    async def _handle_callback(self, event: InboundEvent) -> None:
        ack_text: Optional[str] = None
        try:
            self._ensure_not_blocked(event)
            handler, arg = self.match_callback(event.text)
            if handler is None:
                logger.info(f"[Router] unknown callback from user_id={event.user_id}: {event.text}")
                ack_text = "❌ Unknown action"
            elif arg is None:
                ack_text = await handler(event)
            else:
                ack_text = await handler(event, arg)
        except BotError as e:
            ack_text = e.user_message
        except Exception as e:
            logger.exception(f"[Router] callback {event.text} from user_id={event.user_id} failed: {e}")
            ack_text = GENERIC_CALLBACK_FAILURE
        finally:
            await self.notifier.acknowledge(event.callback_id, ack_text)


def build_router(store, notifier: Notifier, config: BotConfig, clock: Clock = system_clock_ms) -> EventRouter:
    """Wire services and handlers around one store and one outbound transport."""
    states = ConversationStateMachine(store)
    rate_limiter = RateLimiter(store, clock)
    profiles = ProfileService(store, notifier, config, clock)
    confessions = ConfessionService(store, notifier, profiles, rate_limiter, SequenceCounter(store), config, clock)
    comments = CommentService(store, profiles, rate_limiter, config, clock)
    social = SocialService(store, profiles)
    leaderboard = LeaderboardService(store)

    users = UserHandlers(notifier, config, states, profiles, confessions, comments, social, leaderboard)
    admin = AdminHandlers(notifier, config, states, profiles, confessions, leaderboard)
    return EventRouter(notifier, config, states, profiles, users, admin)
