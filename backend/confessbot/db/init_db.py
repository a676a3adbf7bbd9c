"""Create all tables. Run on app startup."""
from sqlalchemy.engine import Engine

from confessbot.db.base import Base
from confessbot.db.session import engine as default_engine
from confessbot.models import (  # noqa: F401 - register models
    comment_thread,
    confession,
    conversation_state,
    counter,
    flow_control,
    user_profile,
)


def init_db(engine: Engine = default_engine) -> None:
    Base.metadata.create_all(bind=engine)
