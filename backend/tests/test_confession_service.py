"""Submission, moderation and publication of confessions."""
import asyncio

import pytest

from confessbot.core.exceptions import AccessDenied, CooldownActive, InvalidTransition, NotFound, ValidationFailed

from conftest import ADMIN_ID, CHANNEL_ID, OTHER_ADMIN_ID

AUTHOR = 42


@pytest.fixture()
def author(services):
    return services.profiles.get_or_create(AUTHOR, "Ada")


@pytest.mark.asyncio
async def test_length_boundaries(services, author, clock):
    with pytest.raises(ValidationFailed):
        await services.confessions.submit(AUTHOR, "abcd")
    with pytest.raises(ValidationFailed):
        await services.confessions.submit(AUTHOR, "x" * 1001)

    first = await services.confessions.submit(AUTHOR, "abcde")
    clock.advance(seconds=61)
    second = await services.confessions.submit(AUTHOR, "y" * 1000)
    assert first["confession_number"] == 1
    assert second["confession_number"] == 2


@pytest.mark.asyncio
async def test_whitespace_does_not_count_towards_length(services, author):
    with pytest.raises(ValidationFailed):
        await services.confessions.submit(AUTHOR, "   abcd   ")


@pytest.mark.asyncio
async def test_rejected_input_does_not_consume_a_number(services, author, store):
    with pytest.raises(ValidationFailed):
        await services.confessions.submit(AUTHOR, "<b></b>")
    assert store.get("counters", "confessionNumber") is None


@pytest.mark.asyncio
async def test_submission_is_stored_sanitized_and_pending(services, author, store, notifier):
    confession = await services.confessions.submit(AUTHOR, "Hello <script>alert(1)</script> #test")

    stored = store.get("confessions", confession["confession_id"])
    assert stored["status"] == "pending"
    assert "<script>" not in stored["text"]
    assert stored["text"].startswith("Hello")
    assert stored["hashtags"] == ["#test"]
    assert store.get("users", AUTHOR)["total_confessions"] == 1

    for admin in (ADMIN_ID, OTHER_ADMIN_ID):
        assert "New Confession #1" in notifier.last_to(admin)
        keyboard = notifier.keyboards_to(admin)[-1]
        assert keyboard.callback_data() == [f"approve_{confession['confession_id']}", f"reject_{confession['confession_id']}"]


@pytest.mark.asyncio
async def test_admin_preview_is_truncated(services, author, notifier):
    await services.confessions.submit(AUTHOR, "z" * 500)
    preview = notifier.last_to(ADMIN_ID)
    assert "z" * 200 + "..." in preview
    assert "z" * 201 not in preview


@pytest.mark.asyncio
async def test_cooldown_between_submissions(services, author, clock):
    await services.confessions.submit(AUTHOR, "first confession")
    clock.advance(seconds=20)
    with pytest.raises(CooldownActive) as excinfo:
        await services.confessions.submit(AUTHOR, "second confession")
    assert excinfo.value.wait_seconds == 40
    assert "40 seconds" in excinfo.value.user_message

    clock.advance(seconds=40)
    second = await services.confessions.submit(AUTHOR, "second confession")
    assert second["confession_number"] == 2


@pytest.mark.asyncio
async def test_failed_admin_delivery_does_not_abort_submission(services, author, notifier, store):
    notifier.unreachable.add(ADMIN_ID)
    confession = await services.confessions.submit(AUTHOR, "still stored")
    assert store.get("confessions", confession["confession_id"]) is not None
    assert notifier.texts_to(OTHER_ADMIN_ID)


@pytest.mark.asyncio
async def test_approve_publishes_and_rewards(services, author, store, notifier):
    confession = await services.confessions.submit(AUTHOR, "please approve #me")
    cid = confession["confession_id"]

    approved = await services.confessions.approve(cid, ADMIN_ID)

    assert approved["status"] == "approved"
    assert store.get("confessions", cid)["decided_by"] == ADMIN_ID
    assert store.get("users", AUTHOR)["reputation"] == 10
    thread = store.get("comments", cid)
    assert thread["comments"] == [] and thread["confession_number"] == 1

    post = notifier.last_to(CHANNEL_ID)
    assert post.startswith("#1")
    link = notifier.keyboards_to(CHANNEL_ID)[-1].rows[0][0].url
    assert link == f"https://t.me/TestConfessBot?start=comments_{cid}"
    assert "approved" in notifier.last_to(AUTHOR)


@pytest.mark.asyncio
async def test_confession_is_decided_only_once(services, author, store, notifier):
    confession = await services.confessions.submit(AUTHOR, "decide me once")
    cid = confession["confession_id"]
    await services.confessions.approve(cid, ADMIN_ID)

    with pytest.raises(InvalidTransition):
        await services.confessions.approve(cid, OTHER_ADMIN_ID)
    with pytest.raises(InvalidTransition):
        await services.confessions.reject(cid, OTHER_ADMIN_ID, "too late")

    assert store.get("confessions", cid)["status"] == "approved"
    assert store.get("users", AUTHOR)["reputation"] == 10
    assert len(notifier.texts_to(CHANNEL_ID)) == 1


@pytest.mark.asyncio
async def test_concurrent_approvals_publish_once(services, author, notifier):
    confession = await services.confessions.submit(AUTHOR, "race for it")
    results = await asyncio.gather(
        services.confessions.approve(confession["confession_id"], ADMIN_ID),
        services.confessions.approve(confession["confession_id"], OTHER_ADMIN_ID),
        return_exceptions=True,
    )
    assert sum(1 for result in results if isinstance(result, dict)) == 1
    assert sum(1 for result in results if isinstance(result, InvalidTransition)) == 1
    assert len(notifier.texts_to(CHANNEL_ID)) == 1


@pytest.mark.asyncio
async def test_reject_records_reason_and_tells_author(services, author, store, notifier):
    confession = await services.confessions.submit(AUTHOR, "reject me please")
    cid = confession["confession_id"]

    await services.confessions.reject(cid, ADMIN_ID, "Personal attack")

    stored = store.get("confessions", cid)
    assert stored["status"] == "rejected"
    assert stored["rejection_reason"] == "Personal attack"
    assert store.get("comments", cid) is None
    assert "Personal attack" in notifier.last_to(AUTHOR)
    assert "#1" in notifier.last_to(AUTHOR)
    assert not notifier.texts_to(CHANNEL_ID)


@pytest.mark.asyncio
async def test_empty_rejection_reason_refused(services, author):
    confession = await services.confessions.submit(AUTHOR, "needs a reason")
    with pytest.raises(ValidationFailed):
        await services.confessions.reject(confession["confession_id"], ADMIN_ID, "   ")


@pytest.mark.asyncio
async def test_non_admin_cannot_decide(services, author, store, caplog):
    confession = await services.confessions.submit(AUTHOR, "not yours to judge")
    with pytest.raises(AccessDenied):
        await services.confessions.approve(confession["confession_id"], AUTHOR)
    with pytest.raises(AccessDenied):
        await services.confessions.reject(confession["confession_id"], AUTHOR, "nope")
    assert store.get("confessions", confession["confession_id"])["status"] == "pending"
    assert "access_denied" in caplog.text


@pytest.mark.asyncio
async def test_unknown_confession(services):
    with pytest.raises(NotFound):
        await services.confessions.approve("confess_0_0_0", ADMIN_ID)


@pytest.mark.asyncio
async def test_pending_queue_is_oldest_first(services, author, clock):
    for text in ("first one", "second one", "third one"):
        await services.confessions.submit(AUTHOR, text)
        clock.advance(seconds=61)
    queue = services.confessions.pending_queue(limit=2)
    assert [c["text"] for c in queue] == ["first one", "second one"]
