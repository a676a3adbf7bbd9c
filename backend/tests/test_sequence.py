"""Confession numbering under concurrency."""
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy.orm import sessionmaker

from confessbot.db.init_db import init_db
from confessbot.db.session import build_engine
from confessbot.services.record_store import RecordStore
from confessbot.services.sequence import SequenceCounter


def test_absent_counter_starts_at_one(store):
    counter = SequenceCounter(store)
    assert counter.current() == 0
    assert counter.increment() == 1
    assert counter.increment() == 2
    assert counter.current() == 2


def test_concurrent_increments_hand_out_each_number_once(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'sequence.db'}")
    init_db(engine)
    store = RecordStore(sessionmaker(bind=engine), max_retries=50, retry_backoff=0.001)
    counter = SequenceCounter(store)

    with ThreadPoolExecutor(max_workers=8) as pool:
        numbers = list(pool.map(lambda _: counter.increment(), range(80)))

    assert sorted(numbers) == list(range(1, 81))
    assert counter.current() == 80
    engine.dispose()
