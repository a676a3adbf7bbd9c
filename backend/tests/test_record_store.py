"""RecordStore document operations and atomic primitives."""
from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from confessbot.core.exceptions import StoreConflictError
from confessbot.db.init_db import init_db
from confessbot.db.session import build_engine
from confessbot.services.record_store import RecordStore

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _confession(number: int, status: str = "pending", comments: int = 0) -> dict:
    return {
        "confession_number": number,
        "user_id": 7,
        "text": f"confession {number}",
        "status": status,
        "hashtags": [],
        "total_comments": comments,
        "created_at": CREATED,
    }


def test_set_then_get_returns_document(store):
    stored = store.set("counters", "visits", {"value": 3})
    assert stored["value"] == 3
    assert stored["version"] == 1
    assert store.get("counters", "visits")["value"] == 3
    assert store.get("counters", "missing") is None


def test_set_overwrites_and_bumps_version(store):
    store.set("counters", "visits", {"value": 3})
    stored = store.set("counters", "visits", {"value": 9})
    assert stored["value"] == 9
    assert stored["version"] == 2


def test_unknown_collection_and_field_rejected(store):
    with pytest.raises(ValueError):
        store.get("nope", 1)
    with pytest.raises(ValueError):
        store.update("counters", "visits", {"colour": "red"})


def test_update_missing_document_returns_false(store):
    assert store.update("counters", "ghost", {"value": 1}) is False


def test_compare_and_update_only_applies_when_expected_matches(store):
    store.set("confessions", "c1", _confession(1))
    assert store.compare_and_update("confessions", "c1", {"status": "pending"}, {"status": "approved"}) is True
    assert store.compare_and_update("confessions", "c1", {"status": "pending"}, {"status": "rejected"}) is False
    assert store.get("confessions", "c1")["status"] == "approved"


def test_unique_violation_surfaces_as_conflict(store):
    store.set("confessions", "c1", _confession(1))
    with pytest.raises(StoreConflictError):
        store.set("confessions", "c2", _confession(1))


def test_query_filters_order_and_limit(store):
    store.set("confessions", "a", _confession(1, "approved", comments=2))
    store.set("confessions", "b", _confession(2, "approved", comments=9))
    store.set("confessions", "c", _confession(3, "pending", comments=50))

    approved = store.query("confessions", {"status": "approved"}, order_by="total_comments", descending=True)
    assert [doc["confession_id"] for doc in approved] == ["b", "a"]

    busy = store.query("confessions", [("total_comments", ">=", 9)], order_by="confession_number")
    assert [doc["confession_id"] for doc in busy] == ["b", "c"]

    assert len(store.query("confessions", limit=2)) == 2
    assert store.count("confessions", {"status": "pending"}) == 1
    assert store.total("confessions", "total_comments", {"status": "approved"}) == 11


def test_query_none_filters(store):
    store.set("users", 1, {"username": "alice"})
    store.set("users", 2, {})
    named = store.query("users", [("username", "!=", None)])
    unnamed = store.query("users", {"username": None})
    assert [doc["telegram_id"] for doc in named] == [1]
    assert [doc["telegram_id"] for doc in unnamed] == [2]


def test_atomic_increment(store):
    assert store.run_atomic_increment("counters", "n", "value") is None
    assert store.run_atomic_increment("counters", "n", "value", create_missing=True) == 1
    assert store.run_atomic_increment("counters", "n", "value", 5) == 6


def test_mutate_uses_default_when_missing(store):
    assert store.mutate("cooldowns", 5, lambda doc: {"actions": {"x": 1}}) is None
    created = store.mutate("cooldowns", 5, lambda doc: {"actions": {"x": 1}}, default={"actions": {}})
    assert created["actions"] == {"x": 1}
    updated = store.mutate("cooldowns", 5, lambda doc: {"actions": {**doc["actions"], "y": 2}})
    assert updated["actions"] == {"x": 1, "y": 2}
    assert updated["version"] == created["version"] + 1


def test_mutate_empty_change_is_a_no_op(store):
    store.set("counters", "n", {"value": 1})
    result = store.mutate("counters", "n", lambda doc: {})
    assert result["version"] == 1


def test_mutate_gives_up_when_version_keeps_moving(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}")
    init_db(engine)
    store = RecordStore(sessionmaker(bind=engine), max_retries=3, retry_backoff=0)
    store.set("counters", "n", {"value": 1})

    def racing_change(doc):
        # another writer lands between our read and our write, every time
        store.run_atomic_increment("counters", "n", "value")
        return {"value": 100}

    with pytest.raises(StoreConflictError):
        store.mutate("counters", "n", racing_change)
    engine.dispose()


def test_array_append_unique_and_remove(store):
    store.set("users", 1, {"following": []})
    assert store.array_append("users", 1, "following", 2, unique=True) is True
    assert store.array_append("users", 1, "following", 2, unique=True) is False
    assert store.get("users", 1)["following"] == [2]

    assert store.array_remove("users", 1, "following", 2) is True
    assert store.array_remove("users", 1, "following", 2) is False
    assert store.get("users", 1)["following"] == []


def test_array_append_prunes_with_keep(store):
    store.array_append("rate_limits", 1, "comment_timestamps", 10, create_missing=True)
    store.array_append("rate_limits", 1, "comment_timestamps", 20)
    store.array_append("rate_limits", 1, "comment_timestamps", 30, keep=lambda ts: ts >= 20)
    assert store.get("rate_limits", 1)["comment_timestamps"] == [20, 30]


def test_delete_with_expected_version(store):
    store.set("user_states", 1, {"state": "awaiting_bio", "payload": {}})
    assert store.delete("user_states", 1, expected={"version": 99}) is False
    assert store.delete("user_states", 1, expected={"version": 1}) is True
    assert store.delete("user_states", 1) is False
