from confessbot.models.user_profile import UserProfile
from confessbot.models.confession import Confession, ConfessionStatus
from confessbot.models.comment_thread import CommentThread
from confessbot.models.flow_control import Cooldown, RateLimit
from confessbot.models.counter import Counter
from confessbot.models.conversation_state import ConversationState

__all__ = [
    "UserProfile",
    "Confession",
    "ConfessionStatus",
    "CommentThread",
    "Cooldown",
    "RateLimit",
    "Counter",
    "ConversationState",
]
