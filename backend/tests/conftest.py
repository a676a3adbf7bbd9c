# backend/tests/conftest.py
from typing import Iterator, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from confessbot.core.config import BotConfig
from confessbot.db.base import Base
from confessbot.db.init_db import init_db
from confessbot.schemas.telegram import EventKind, InboundEvent
from confessbot.services.record_store import RecordStore
from confessbot.telegram.notifier import Notifier
from confessbot.telegram.router import build_router

ADMIN_ID = 1000
OTHER_ADMIN_ID = 1001
CHANNEL_ID = "@test_confessions"


class FakeClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float = 0, ms: int = 0) -> None:
        self.now += int(seconds * 1000) + ms


class RecordingNotifier(Notifier):
    """Collects outbound traffic instead of talking to Telegram."""

    def __init__(self):
        self.sent: List[Tuple[object, str, object]] = []
        self.acks: List[Tuple[str, Optional[str]]] = []
        self.unreachable = set()

    async def send(self, target_id, text, keyboard=None) -> bool:
        if target_id in self.unreachable:
            return False
        self.sent.append((target_id, text, keyboard))
        return True

    async def acknowledge(self, interaction_id, text=None) -> bool:
        self.acks.append((interaction_id, text))
        return True

    def texts_to(self, target_id) -> List[str]:
        return [text for target, text, _ in self.sent if target == target_id]

    def last_to(self, target_id) -> str:
        texts = self.texts_to(target_id)
        assert texts, f"nothing sent to {target_id}"
        return texts[-1]

    def keyboards_to(self, target_id) -> list:
        return [keyboard for target, _, keyboard in self.sent if target == target_id and keyboard is not None]


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def store(engine: Engine) -> RecordStore:
    return RecordStore(sessionmaker(bind=engine, autocommit=False, autoflush=False), retry_backoff=0)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def config() -> BotConfig:
    return BotConfig(
        admin_ids=frozenset({ADMIN_ID, OTHER_ADMIN_ID}),
        channel_id=CHANNEL_ID,
        bot_username="TestConfessBot",
    )


@pytest.fixture()
def router(store, notifier, config, clock):
    return build_router(store, notifier, config, clock)


def message(user_id: int, text: str, first_name: str = "Test") -> InboundEvent:
    return InboundEvent(kind=EventKind.MESSAGE, user_id=user_id, chat_id=user_id, text=text, first_name=first_name)


def callback(user_id: int, data: str, callback_id: str = "cb-1") -> InboundEvent:
    return InboundEvent(kind=EventKind.CALLBACK, user_id=user_id, chat_id=user_id, text=data, callback_id=callback_id)


@pytest.fixture()
def services(store, notifier, config, clock):
    from types import SimpleNamespace

    from confessbot.core.rate_limiter import RateLimiter
    from confessbot.services.comment_service import CommentService
    from confessbot.services.confession_service import ConfessionService
    from confessbot.services.leaderboard_service import LeaderboardService
    from confessbot.services.profile_service import ProfileService
    from confessbot.services.sequence import SequenceCounter
    from confessbot.services.social_service import SocialService

    rate_limiter = RateLimiter(store, clock)
    profiles = ProfileService(store, notifier, config, clock)
    confessions = ConfessionService(store, notifier, profiles, rate_limiter, SequenceCounter(store), config, clock)
    return SimpleNamespace(
        rate_limiter=rate_limiter,
        profiles=profiles,
        confessions=confessions,
        comments=CommentService(store, profiles, rate_limiter, config, clock),
        social=SocialService(store, profiles),
        leaderboard=LeaderboardService(store),
    )
