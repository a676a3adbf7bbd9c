"""Rankings and counts."""
import pytest

from conftest import ADMIN_ID


@pytest.mark.asyncio
async def test_trending_and_hashtags(services, clock):
    services.profiles.get_or_create(1)
    ids = []
    for text in ("exams #stress", "crush #love #stress", "food #Stress"):
        confession = await services.confessions.submit(1, text)
        await services.confessions.approve(confession["confession_id"], ADMIN_ID)
        ids.append(confession["confession_id"])
        clock.advance(seconds=61)
    pending = await services.confessions.submit(1, "not yet #stress")

    services.profiles.get_or_create(2)
    await services.comments.add_comment(ids[1], 2, "same here")
    clock.advance(seconds=11)
    await services.comments.add_comment(ids[1], 2, "and again")

    trending = services.leaderboard.trending()
    assert trending[0]["confession_id"] == ids[1]
    assert pending["confession_id"] not in [c["confession_id"] for c in trending]

    hashtags = services.leaderboard.popular_hashtags()
    assert hashtags[0] == ("#stress", 2)
    assert ("#Stress", 1) in hashtags


def test_best_commenters_and_rank(services, store):
    for user_id, comments in ((1, 5), (2, 9), (3, 0)):
        services.profiles.get_or_create(user_id)
        store.update("users", user_id, {"comment_count": comments})

    assert [u["telegram_id"] for u in services.leaderboard.best_commenters()] == [2, 1]
    assert services.leaderboard.rank_of(2) == 1
    assert services.leaderboard.rank_of(1) == 2
    assert services.leaderboard.rank_of(3) == 3
    assert services.leaderboard.rank_of(99) is None


def test_browse_users_skips_viewer_unnamed_and_blocked(services, store):
    for user_id, name, reputation in ((1, "viewer", 50), (2, "popular", 40), (3, "quiet", 10), (4, None, 99)):
        services.profiles.get_or_create(user_id)
        store.update("users", user_id, {"username": name, "reputation": reputation})
    services.profiles.get_or_create(5)
    store.update("users", 5, {"username": "banned", "is_active": False})

    assert [u["username"] for u in services.leaderboard.browse_users(1)] == ["popular", "quiet"]


@pytest.mark.asyncio
async def test_stats(services):
    services.profiles.get_or_create(1)
    confession = await services.confessions.submit(1, "count me in")
    stats = services.leaderboard.stats()
    assert stats["users"] == 1
    assert stats["confessions"] == 1
    assert stats["pending"] == 1
    assert stats["approved"] == 0
    assert stats["comments"] == 0
    assert confession["confession_number"] == 1
