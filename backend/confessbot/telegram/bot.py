"""
python-telegram-bot wiring.

Webhook mode only needs an initialized `Bot` for outbound calls; Telegram
POSTs updates to the FastAPI route. Polling mode runs a PTB `Application`
inside the FastAPI event loop and forwards every update to the same router.
"""
import asyncio
import logging
from typing import Optional

from telegram import Bot, Update, error
from telegram.ext import Application, ContextTypes, TypeHandler

from confessbot.schemas.telegram import InboundEvent, TelegramUpdate

logger = logging.getLogger(__name__)


async def dispatch_update(router, payload: dict) -> None:
    """Validate a raw update dict and hand it to the router. Ignores updates the bot does not act on."""
    event = InboundEvent.from_update(TelegramUpdate.model_validate(payload))
    if event is None:
        return
    await router.handle(event)


def build_application(token: str, router) -> Application:
    app = Application.builder().token(token).build()

    async def _forward(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await dispatch_update(router, update.to_dict())

    app.add_handler(TypeHandler(Update, _forward))
    return app


async def create_bot(token: str) -> Bot:
    bot = Bot(token)
    await bot.initialize()
    return bot


async def _start_polling_with_retry(app: Application, max_retries: int = 3, initial_backoff: int = 2) -> bool:
    for attempt in range(max_retries):
        try:
            print(f"[Telegram] Starting polling (attempt {attempt + 1}/{max_retries})...")
            await app.updater.start_polling(drop_pending_updates=True)
            print("[Telegram] ✓ Polling started successfully")
            return True
        except error.Conflict as e:
            if attempt < max_retries - 1:
                backoff = initial_backoff * (2 ** attempt)
                print(f"[Telegram] ⚠ Conflict detected: {e}")
                print(f"[Telegram] Retrying in {backoff}s (attempt {attempt + 1}/{max_retries})...")
                await asyncio.sleep(backoff)
            else:
                print(f"[Telegram] ✗ Failed after {max_retries} retries. Polling disabled.")
                return False
    return False


async def start_polling(app: Application) -> bool:
    await app.initialize()
    await app.start()
    return await _start_polling_with_retry(app)


async def stop_polling(app: Optional[Application]) -> None:
    """Called on FastAPI shutdown."""
    if app is None:
        return
    try:
        if app.updater and app.updater.running:
            await app.updater.stop()
        if app.running:
            await app.stop()
        await app.shutdown()
    except error.TelegramError as e:
        logger.warning(f"[Telegram] shutdown error: {e}")
