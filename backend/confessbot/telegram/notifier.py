"""
Notification sink: the only way bot logic talks back to users.

Delivery is best-effort. Failures are logged and reported as False, never
raised, so a blocked bot or a deleted chat cannot abort the operation that
triggered the message.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional, Union

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, KeyboardButton, ReplyKeyboardMarkup
from telegram.error import TelegramError

from confessbot.telegram.keyboards import Keyboard

logger = logging.getLogger(__name__)

ChatTarget = Union[int, str]


class Notifier(ABC):
    """Interface of the outbound transport."""

    @abstractmethod
    async def send(self, target_id: ChatTarget, text: str, keyboard: Optional[Keyboard] = None) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def acknowledge(self, interaction_id: str, text: Optional[str] = None) -> bool:
        raise NotImplementedError


def to_reply_markup(keyboard: Optional[Keyboard]):
    if keyboard is None:
        return None
    if keyboard.inline:
        return InlineKeyboardMarkup(
            [
                [InlineKeyboardButton(button.text, callback_data=button.callback_data, url=button.url) for button in row]
                for row in keyboard.rows
            ]
        )
    return ReplyKeyboardMarkup(
        [[KeyboardButton(button.text) for button in row] for row in keyboard.rows],
        resize_keyboard=True,
    )


class TelegramNotifier(Notifier):
    """Notifier backed by a python-telegram-bot `Bot`."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send(self, target_id: ChatTarget, text: str, keyboard: Optional[Keyboard] = None) -> bool:
        try:
            await self.bot.send_message(
                chat_id=target_id,
                text=text,
                reply_markup=to_reply_markup(keyboard),
            )
            return True
        except TelegramError as e:
            logger.warning(f"Failed to send Telegram message to {target_id}: {e}")
            return False

    async def acknowledge(self, interaction_id: str, text: Optional[str] = None) -> bool:
        try:
            await self.bot.answer_callback_query(callback_query_id=interaction_id, text=text)
            return True
        except TelegramError as e:
            logger.warning(f"Failed to answer callback {interaction_id}: {e}")
            return False
