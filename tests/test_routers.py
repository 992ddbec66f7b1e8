import pytest
from fastapi.testclient import TestClient

from gymchat.database.connection import mongo_db_dependency
from gymchat.exceptions import StoreUnavailable
from gymchat.main import app
from gymchat.services.chat_service import ChatService
from gymchat.utils.dependencies import get_chat_service


AMY = {"X-Participant-Id": "amy@x.com"}
ADMIN = {"X-Participant-Id": "admin"}


@pytest.fixture
def client(db):
    app.dependency_overrides[mongo_db_dependency] = lambda: db
    # no context manager: the lifespan would try to reach a real MongoDB
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_member_message_defaults_to_admin(client):
    res = client.post("/messages", json={"content": "Is the pool open?"}, headers=AMY)

    assert res.status_code == 201
    message = res.json()["message"]
    assert message["receiver_id"] == "admin"
    assert message["sender_id"] == "amy@x.com"
    assert message["read"] is False


def test_admin_inbox_flow(client):
    client.post("/messages", json={"content": "Hi"}, headers=AMY)
    client.post("/messages", json={"content": "Hello", "sender_name": "Bob"}, headers={"X-Participant-Id": "bob@x.com"})

    res = client.get("/conversations", headers=ADMIN)
    assert res.status_code == 200
    items = res.json()["items"]
    assert [i["other_participant"] for i in items] == ["bob@x.com", "amy@x.com"]
    assert client.get("/conversations/unread", headers=ADMIN).json() == {"unread": 2}

    res = client.get("/conversations/amy@x.com/messages", headers=ADMIN)
    assert res.status_code == 200
    body = res.json()
    assert body["conversation_id"] == "admin_amy_x_com"
    assert [m["content"] for m in body["items"]] == ["Hi"]
    assert body["items"][0]["read"] is False

    assert client.get("/conversations/unread", headers=ADMIN).json() == {"unread": 1}
    again = client.get("/conversations/amy@x.com/messages", headers=ADMIN).json()
    assert again["items"][0]["read"] is True


def test_search_parameter(client):
    client.post("/messages", json={"content": "Hi"}, headers=AMY)
    client.post("/messages", json={"content": "Hey"}, headers={"X-Participant-Id": "bob@x.com"})

    items = client.get("/conversations", params={"search": "bob"}, headers=ADMIN).json()["items"]

    assert [i["other_participant"] for i in items] == ["bob@x.com"]


def test_blank_message_is_bad_request(client):
    res = client.post("/messages", json={"receiver_id": "bob@x.com", "content": "  "}, headers=ADMIN)

    assert res.status_code == 400
    assert "empty" in res.json()["detail"]


def test_missing_identity_is_unauthorized(client):
    assert client.get("/conversations").status_code == 401
    assert client.post("/messages", json={"content": "x"}).status_code == 401


def test_store_outage_maps_to_503(client):
    class _DownRepo:
        async def list_for_participant(self, participant_id):
            raise StoreUnavailable("down")

    app.dependency_overrides[get_chat_service] = lambda: ChatService(_DownRepo())

    res = client.get("/conversations", headers=ADMIN)

    assert res.status_code == 503


def test_websocket_send_is_acknowledged(client):
    with client.websocket_connect("/messages/ws/amy@x.com") as ws:
        ws.send_json({"content": "Booking a trainer"})
        ack = ws.receive_json()
        assert ack["type"] == "ack"
        assert ack["message"]["receiver_id"] == "admin"

        ws.send_json({"to": "admin", "content": "   "})
        assert ws.receive_json()["type"] == "error"

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "detail": "Invalid JSON"}

    assert client.get("/conversations/unread", headers=ADMIN).json() == {"unread": 1}


def test_websocket_rejects_non_text_fields_and_stays_open(client):
    with client.websocket_connect("/messages/ws/amy@x.com") as ws:
        ws.send_json({"content": 5})
        assert ws.receive_json() == {"type": "error", "detail": "Invalid message payload"}

        ws.send_json({"content": "hi", "to": 7})
        assert ws.receive_json() == {"type": "error", "detail": "Invalid message payload"}

        ws.send_json(["not", "an", "object"])
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"content": "still here"})
        assert ws.receive_json()["type"] == "ack"

    assert client.get("/conversations/unread", headers=ADMIN).json() == {"unread": 1}


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
