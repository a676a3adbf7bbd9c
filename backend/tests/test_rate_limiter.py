"""Cooldown and sliding-window comment limiting."""
from confessbot.core.rate_limiter import RateLimiter


def test_cooldown_blocks_until_window_elapses(store, clock):
    limiter = RateLimiter(store, clock)
    assert limiter.check_cooldown(1, "confession", 60_000) is True

    limiter.set_cooldown(1, "confession")
    clock.advance(seconds=30)
    assert limiter.check_cooldown(1, "confession", 60_000) is False
    assert limiter.remaining_cooldown_seconds(1, "confession", 60_000) == 30

    clock.advance(seconds=30)
    assert limiter.check_cooldown(1, "confession", 60_000) is True
    assert limiter.remaining_cooldown_seconds(1, "confession", 60_000) == 0


def test_remaining_seconds_round_up(store, clock):
    limiter = RateLimiter(store, clock)
    limiter.set_cooldown(1)
    clock.advance(ms=59_001)
    assert limiter.remaining_cooldown_seconds(1) == 1


def test_cooldowns_are_per_action_and_per_user(store, clock):
    limiter = RateLimiter(store, clock)
    limiter.set_cooldown(1, "confession")
    limiter.set_cooldown(1, "report")
    assert set(store.get("cooldowns", 1)["actions"]) == {"confession", "report"}
    assert limiter.check_cooldown(2, "confession") is True


def test_three_comments_per_thirty_seconds(store, clock):
    limiter = RateLimiter(store, clock)
    for _ in range(3):
        assert limiter.check_comment_rate_limit(1, 30_000, 3) is True
        limiter.record_comment(1, 30_000)
        clock.advance(seconds=1)
    assert limiter.check_comment_rate_limit(1, 30_000, 3) is False

    # first comment leaves the window 30s after it was made
    clock.advance(seconds=27)
    assert limiter.check_comment_rate_limit(1, 30_000, 3) is True


def test_recorded_timestamps_are_pruned(store, clock):
    limiter = RateLimiter(store, clock)
    limiter.record_comment(1, 30_000)
    clock.advance(seconds=31)
    limiter.record_comment(1, 30_000)
    assert store.get("rate_limits", 1)["comment_timestamps"] == [clock.now]


def test_record_comment_failure_is_logged_not_raised(store, clock, caplog, monkeypatch):
    limiter = RateLimiter(store, clock)

    def broken(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "array_append", broken)
    limiter.record_comment(1, 30_000)
    assert "Rate limit recording error" in caplog.text
