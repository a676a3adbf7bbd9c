"""HTTP surface: webhook and status."""
import pytest
from fastapi.testclient import TestClient

from confessbot.main import create_app

from conftest import ADMIN_ID

SECRET = "s3cret"
USER = 77


def _message_update(user_id: int, text: str, update_id: int = 1) -> dict:
    return {
        "update_id": update_id,
        "message": {
            "message_id": update_id,
            "from": {"id": user_id, "is_bot": False, "first_name": "Web"},
            "chat": {"id": user_id, "type": "private"},
            "date": 1700000000,
            "text": text,
        },
    }


def _callback_update(user_id: int, data: str, update_id: int = 2) -> dict:
    return {
        "update_id": update_id,
        "callback_query": {
            "id": f"cq-{update_id}",
            "from": {"id": user_id, "is_bot": False, "first_name": "Web"},
            "chat_instance": "x",
            "message": {
                "message_id": 10,
                "chat": {"id": user_id, "type": "private"},
                "date": 1700000000,
            },
            "data": data,
        },
    }


@pytest.fixture()
def client(store, notifier, config):
    app = create_app(store=store, notifier=notifier, config=config, webhook_secret=SECRET)
    with TestClient(app) as test_client:
        yield test_client


def _post(client, payload, secret=SECRET):
    return client.post(
        "/telegram/webhook",
        json=payload,
        headers={"X-Telegram-Bot-Api-Secret-Token": secret},
    )


def test_webhook_rejects_wrong_secret(client, notifier):
    response = _post(client, _message_update(USER, "/start"), secret="wrong")
    assert response.status_code == 403
    assert notifier.sent == []


def test_webhook_routes_message(client, store, notifier):
    response = _post(client, _message_update(USER, "/start"))
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert store.get("users", USER)["first_name"] == "Web"
    assert "choose a display name" in notifier.last_to(USER)


def test_webhook_routes_callback(client, notifier):
    response = _post(client, _callback_update(ADMIN_ID, "admin_menu"))
    assert response.status_code == 200
    assert notifier.acks == [("cq-2", None)]
    assert "Admin Dashboard" in notifier.last_to(ADMIN_ID)


def test_webhook_ignores_non_text_updates(client, notifier):
    update = _message_update(USER, "ignored")
    del update["message"]["text"]
    response = _post(client, update)
    assert response.status_code == 200
    assert notifier.sent == []


def test_webhook_answers_200_for_malformed_payload(client):
    response = _post(client, {"unexpected": True})
    assert response.status_code == 200
    assert response.json() == {"ok": False}


def test_webhook_answers_200_when_handler_fails(client, notifier, monkeypatch):
    app_router = client.app.state.event_router

    async def explode(event, arg=None):
        raise RuntimeError("boom")

    monkeypatch.setitem(app_router.commands, "/help", explode)
    response = _post(client, _message_update(USER, "/help"))
    assert response.status_code == 200
    assert "Something went wrong" in notifier.last_to(USER)


def test_status_counts(client, store):
    _post(client, _message_update(USER, "/start"))
    response = client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "online"
    assert "timestamp" in body
    assert body["stats"] == {"users": 1, "confessions": 0, "comments": 0}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
