"""
Confession Bot backend.

ARCHITECTURE:
- Telegram: updates arrive on /telegram/webhook (or via in-process polling)
- EventRouter: classifies each update and dispatches to handlers
- Services: confession lifecycle, comments, profiles, follow graph, rankings
- RecordStore: SQLAlchemy-backed documents, the single source of truth

MODERATION MODEL:
- Every confession waits in `pending` until an admin approves or rejects it
- Each confession is decided exactly once
- Only approved confessions reach the channel
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from confessbot.api.routes import status as status_routes
from confessbot.api.routes import telegram as telegram_routes
from confessbot.core.config import BotConfig, settings
from confessbot.db.init_db import init_db
from confessbot.services.leaderboard_service import LeaderboardService
from confessbot.services.record_store import RecordStore
from confessbot.telegram.bot import build_application, create_bot, start_polling, stop_polling
from confessbot.telegram.notifier import Notifier, TelegramNotifier
from confessbot.telegram.router import build_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    store: Optional[RecordStore] = None,
    notifier: Optional[Notifier] = None,
    config: Optional[BotConfig] = None,
    webhook_secret: Optional[str] = None,
) -> FastAPI:
    """
    Build the FastAPI app. Passing a store and notifier skips database
    initialization and the Telegram connection (used by tests).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup:
        1. Initialize database tables
        2. Connect to Telegram (webhook: Bot only, polling: full Application)
        3. Wire the event router

        Shutdown:
        1. Stop polling / close the Bot session
        """
        bot = None
        polling_app = None
        app.state.event_router = None
        app.state.webhook_secret = webhook_secret if webhook_secret is not None else settings.TELEGRAM_WEBHOOK_SECRET

        active_store = store
        if active_store is None:
            print("[*] Initializing database...")
            init_db()
            print("[OK] Database initialized")
            active_store = RecordStore()
        app.state.store = active_store
        app.state.leaderboard = LeaderboardService(active_store)
        bot_config = config or BotConfig.from_settings(settings)

        try:
            if notifier is not None:
                app.state.event_router = build_router(active_store, notifier, bot_config)
            elif settings.TELEGRAM_BOT_TOKEN:
                if settings.TELEGRAM_MODE == "polling":
                    print("[*] Starting Telegram bot (polling)...")
                    holder = {}
                    polling_app = build_application(settings.TELEGRAM_BOT_TOKEN, _LateRouter(holder))
                    router = build_router(active_store, TelegramNotifier(polling_app.bot), bot_config)
                    holder["router"] = router
                    app.state.event_router = router
                    await start_polling(polling_app)
                else:
                    print("[*] Connecting Telegram bot (webhook)...")
                    bot = await create_bot(settings.TELEGRAM_BOT_TOKEN)
                    app.state.event_router = build_router(active_store, TelegramNotifier(bot), bot_config)
                print("[OK] Bot ready")
            else:
                print("[WARN] Telegram bot disabled (no token)")
        except Exception as e:
            print(f"[ERROR] Startup error: {e}")
            logger.exception("Telegram startup failed")

        yield

        try:
            await stop_polling(polling_app)
            if bot is not None:
                await bot.shutdown()
        except Exception as e:
            print(f"[ERROR] Shutdown error: {e}")

    app = FastAPI(
        title="Confession Bot API",
        description="Telegram bridge for anonymous, admin-moderated confessions.",
        version="0.1.0",
        lifespan=lifespan,
    )

    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=False,
            allow_methods=["GET", "POST"],
            allow_headers=["Content-Type", "Accept", "Origin"],
            max_age=600,
        )

    app.include_router(status_routes.router, tags=["status"])
    app.include_router(telegram_routes.router, prefix="/telegram", tags=["telegram"])
    return app


class _LateRouter:
    """Forwards to the router stored in `holder`; the PTB app must exist before its Bot can back the notifier."""

    def __init__(self, holder: dict):
        self.holder = holder

    async def handle(self, event) -> None:
        await self.holder["router"].handle(event)


app = create_app()
