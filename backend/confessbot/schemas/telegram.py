"""
Inbound Telegram update payloads and the normalized event the router consumes.

Only the fields the bot reads are declared; everything else Telegram sends
is ignored.
"""
from typing import Optional

from pydantic import BaseModel, Field


class TelegramUser(BaseModel):
    id: int
    is_bot: bool = False
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class TelegramChat(BaseModel):
    id: int
    type: Optional[str] = None


class TelegramMessage(BaseModel):
    message_id: int
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    text: Optional[str] = None

    class Config:
        populate_by_name = True


class TelegramCallbackQuery(BaseModel):
    id: str
    from_user: TelegramUser = Field(alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None

    class Config:
        populate_by_name = True


class TelegramUpdate(BaseModel):
    update_id: int
    message: Optional[TelegramMessage] = None
    callback_query: Optional[TelegramCallbackQuery] = None


class EventKind:
    MESSAGE = "message"
    CALLBACK = "callback"


class InboundEvent(BaseModel):
    """A text message or a button press, reduced to what handlers need."""
    kind: str
    user_id: int
    chat_id: int
    text: str = ""
    callback_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def is_callback(self) -> bool:
        return self.kind == EventKind.CALLBACK

    @classmethod
    def from_update(cls, update: TelegramUpdate) -> Optional["InboundEvent"]:
        """None for updates the bot does not act on (edits, photos, channel posts...)."""
        query = update.callback_query
        if query is not None:
            chat_id = query.message.chat.id if query.message else query.from_user.id
            return cls(
                kind=EventKind.CALLBACK,
                user_id=query.from_user.id,
                chat_id=chat_id,
                text=query.data or "",
                callback_id=query.id,
                first_name=query.from_user.first_name,
                last_name=query.from_user.last_name,
            )

        message = update.message
        if message is None or message.from_user is None or message.text is None:
            return None
        return cls(
            kind=EventKind.MESSAGE,
            user_id=message.from_user.id,
            chat_id=message.chat.id,
            text=message.text,
            first_name=message.from_user.first_name,
            last_name=message.from_user.last_name,
        )
