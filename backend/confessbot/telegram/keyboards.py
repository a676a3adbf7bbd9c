"""
Menu labels, callback identifiers and the keyboards built from them.

Keyboards are transport-neutral values; the Telegram notifier converts them
to python-telegram-bot markup at the edge.
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple


@dataclass(frozen=True)
class Button:
    text: str
    callback_data: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class Keyboard:
    rows: Tuple[Tuple[Button, ...], ...]
    inline: bool = True

    def callback_data(self) -> list:
        return [button.callback_data for row in self.rows for button in row if button.callback_data]


def inline_keyboard(*rows: Sequence[Button]) -> Keyboard:
    return Keyboard(rows=tuple(tuple(row) for row in rows if row), inline=True)


def reply_keyboard(*rows: Sequence[str]) -> Keyboard:
    return Keyboard(rows=tuple(tuple(Button(label) for label in row) for row in rows), inline=False)


# ==============================================================================
# MENU LABELS (plain-text buttons of the main reply keyboard)
# ==============================================================================

class MenuLabel:
    SEND_CONFESSION = "📝 Send Confession"
    MY_PROFILE = "👤 My Profile"
    TRENDING = "🔥 Trending"
    DAILY_CHECKIN = "🎯 Daily Check-in"
    HASHTAGS = "🏷️ Hashtags"
    BEST_COMMENTERS = "🏆 Best Commenters"
    SETTINGS = "⚙️ Settings"
    ABOUT = "ℹ️ About Us"
    BROWSE_USERS = "🔍 Browse Users"
    RULES = "📌 Rules"


# ==============================================================================
# CALLBACK DATA
# ==============================================================================

class Callback:
    # exact matches
    SEND_CONFESSION = "send_confession"
    MY_PROFILE = "my_profile"
    BACK_TO_MENU = "back_to_menu"
    DAILY_CHECKIN = "daily_checkin"
    SET_USERNAME = "set_username"
    SET_BIO = "set_bio"
    SHOW_FOLLOWERS = "show_followers"
    SHOW_FOLLOWING = "show_following"
    BROWSE_USERS = "browse_users"
    MY_CONFESSIONS = "my_confessions"
    VIEW_RANKINGS = "view_rankings"
    VIEW_MY_RANK = "view_my_rank"
    NOTIFICATION_SETTINGS = "notification_settings"
    ADMIN_MENU = "admin_menu"
    REVIEW_CONFESSIONS = "review_confessions"
    BOT_STATS = "bot_stats"

    # prefixes, followed by an id
    APPROVE = "approve_"
    REJECT = "reject_"
    ADD_COMMENT = "add_comment_"
    COMMENTS_PAGE = "comments_page_"
    VIEW_PROFILE = "view_profile_"
    FOLLOW_AUTHOR = "follow_author_"
    FOLLOW = "follow_"
    UNFOLLOW = "unfollow_"
    TOGGLE_NOTIFICATION = "toggle_notif_"


def main_menu_keyboard() -> Keyboard:
    return reply_keyboard(
        [MenuLabel.SEND_CONFESSION, MenuLabel.MY_PROFILE],
        [MenuLabel.TRENDING, MenuLabel.DAILY_CHECKIN],
        [MenuLabel.HASHTAGS, MenuLabel.BEST_COMMENTERS],
        [MenuLabel.SETTINGS, MenuLabel.ABOUT],
        [MenuLabel.BROWSE_USERS, MenuLabel.RULES],
    )


BACK_TO_MENU = Button("🔙 Back to Menu", Callback.BACK_TO_MENU)


def back_keyboard() -> Keyboard:
    return inline_keyboard([BACK_TO_MENU])


def admin_review_keyboard(confession_id: str) -> Keyboard:
    return inline_keyboard(
        [
            Button("✅ Approve", f"{Callback.APPROVE}{confession_id}"),
            Button("❌ Reject", f"{Callback.REJECT}{confession_id}"),
        ]
    )


def channel_post_keyboard(bot_username: str, confession_id: str) -> Keyboard:
    return inline_keyboard(
        [Button("👁️‍🗨️ View/Add Comments", url=f"https://t.me/{bot_username}?start=comments_{confession_id}")]
    )


def after_submission_keyboard() -> Keyboard:
    return inline_keyboard(
        [Button("📝 Send Another", Callback.SEND_CONFESSION), Button("🎯 Daily Check-in", Callback.DAILY_CHECKIN)],
        [BACK_TO_MENU],
    )


def profile_keyboard() -> Keyboard:
    return inline_keyboard(
        [Button("📝 Set Username", Callback.SET_USERNAME), Button("📝 Set Bio", Callback.SET_BIO)],
        [Button("🔔 Notification Settings", Callback.NOTIFICATION_SETTINGS), Button("📝 My Confessions", Callback.MY_CONFESSIONS)],
        [Button("👥 Followers", Callback.SHOW_FOLLOWERS), Button("👥 Following", Callback.SHOW_FOLLOWING)],
        [Button("🏆 View Rankings", Callback.VIEW_RANKINGS), Button("🔍 Browse Users", Callback.BROWSE_USERS)],
        [BACK_TO_MENU],
    )


def thread_keyboard(confession_id: str, page: int, total_pages: int, author_name: Optional[str]) -> Keyboard:
    rows = [
        [
            Button("📝 Add Comment", f"{Callback.ADD_COMMENT}{confession_id}"),
            Button(f"👤 Follow {author_name}" if author_name else "👤 Follow Author", f"{Callback.FOLLOW_AUTHOR}{confession_id}"),
        ]
    ]
    if total_pages > 1:
        pagination = []
        if page > 1:
            pagination.append(Button("⬅️ Previous", f"{Callback.COMMENTS_PAGE}{confession_id}_{page - 1}"))
        pagination.append(Button(f"{page}/{total_pages}", f"{Callback.COMMENTS_PAGE}{confession_id}_{page}"))
        if page < total_pages:
            pagination.append(Button("Next ➡️", f"{Callback.COMMENTS_PAGE}{confession_id}_{page + 1}"))
        rows.append(pagination)
    rows.append([BACK_TO_MENU])
    return inline_keyboard(*rows)


def view_profile_keyboard(target_id: int, is_following: bool) -> Keyboard:
    toggle = (
        Button("✅ Following", f"{Callback.UNFOLLOW}{target_id}")
        if is_following
        else Button("➕ Follow", f"{Callback.FOLLOW}{target_id}")
    )
    return inline_keyboard([toggle], [BACK_TO_MENU])


def notification_settings_keyboard(preferences: dict) -> Keyboard:
    rows = []
    for kind, enabled in preferences.items():
        label = kind.replace("_", " ").title()
        rows.append([Button(f"{'🔔' if enabled else '🔕'} {label}", f"{Callback.TOGGLE_NOTIFICATION}{kind}")])
    rows.append([BACK_TO_MENU])
    return inline_keyboard(*rows)


def admin_dashboard_keyboard() -> Keyboard:
    return inline_keyboard(
        [Button("📝 Review Confessions", Callback.REVIEW_CONFESSIONS), Button("📊 Bot Statistics", Callback.BOT_STATS)],
        [BACK_TO_MENU],
    )
