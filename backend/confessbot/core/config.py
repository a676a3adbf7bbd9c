"""Application configuration.

Environment variables override all defaults. `Settings` is read once at import;
`BotConfig` is the frozen value handed to the bot components so nothing below
the bootstrap layer reads the environment.
"""

import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, List

from dotenv import load_dotenv

# Load .env for local development
_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


def _parse_id_list(raw: str) -> FrozenSet[int]:
    ids = set()
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            ids.add(int(chunk))
        except ValueError:
            warnings.warn(f"Ignoring non-numeric admin id {chunk!r}", RuntimeWarning)
    return frozenset(ids)


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./confessbot.db")

    # Telegram Bot (Must be set via .env, never in code)
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    # "webhook": Telegram POSTs updates to /telegram/webhook
    # "polling": python-telegram-bot long-polls from inside the app
    TELEGRAM_MODE: str = os.getenv("TELEGRAM_MODE", "webhook")
    TELEGRAM_WEBHOOK_SECRET: str = os.getenv("TELEGRAM_WEBHOOK_SECRET", "")

    CHANNEL_ID: str = os.getenv("CHANNEL_ID", "")
    BOT_USERNAME: str = os.getenv("BOT_USERNAME", "")
    ADMIN_IDS: FrozenSet[int] = _parse_id_list(os.getenv("ADMIN_IDS", ""))

    # Flow control
    CONFESSION_COOLDOWN_SECONDS: int = int(os.getenv("CONFESSION_COOLDOWN_SECONDS", "60"))
    COMMENT_RATE_WINDOW_SECONDS: int = int(os.getenv("COMMENT_RATE_WINDOW_SECONDS", "30"))
    COMMENT_RATE_MAX: int = int(os.getenv("COMMENT_RATE_MAX", "3"))

    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "").split(",")
        if origin.strip()
    ]

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"


settings = Settings()


@dataclass(frozen=True)
class BotConfig:
    """Immutable runtime configuration passed into every bot component."""

    admin_ids: FrozenSet[int] = field(default_factory=frozenset)
    channel_id: str = ""
    bot_username: str = ""

    confession_cooldown_ms: int = 60_000
    comment_window_ms: int = 30_000
    comment_max_per_window: int = 3

    confession_min_length: int = 5
    confession_max_length: int = 1000
    comment_min_length: int = 3
    username_min_length: int = 3
    username_max_length: int = 20
    bio_max_length: int = 100

    approval_reputation: int = 10
    comment_reputation: int = 5
    checkin_reputation: int = 2

    comments_per_page: int = 3
    admin_preview_length: int = 200

    def is_admin(self, user_id: int) -> bool:
        return user_id in self.admin_ids

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "BotConfig":
        if not source.ADMIN_IDS:
            warnings.warn(
                "ADMIN_IDS is not set. Confessions will queue with nobody to review them.",
                RuntimeWarning,
            )
        if not source.CHANNEL_ID:
            warnings.warn(
                "CHANNEL_ID is not set. Approved confessions cannot be published.",
                RuntimeWarning,
            )
        return cls(
            admin_ids=frozenset(source.ADMIN_IDS),
            channel_id=source.CHANNEL_ID,
            bot_username=source.BOT_USERNAME,
            confession_cooldown_ms=source.CONFESSION_COOLDOWN_SECONDS * 1000,
            comment_window_ms=source.COMMENT_RATE_WINDOW_SECONDS * 1000,
            comment_max_per_window=source.COMMENT_RATE_MAX,
        )
