import pytest
from fastapi.testclient import TestClient

from conftest import make_token, token_for
from teamhub.core import state
from teamhub.main import app
from teamhub.services.conversation_router import conversation_id


@pytest.fixture
def client(users):
    with TestClient(app) as test_client:
        yield test_client


def send(ws, action, data=None):
    ws.send_json({"action": action, "data": data})


def init(ws, user_id):
    send(ws, "init", token_for(user_id))
    frame = ws.receive_json()
    assert frame["type"] == "initMessages"
    return frame["data"]


def init_personal(ws, user_id):
    send(ws, "init-personal-chat", token_for(user_id))
    assert ws.receive_json()["type"] == "personal-chat-initialized"


def test_init_returns_snapshot(client):
    with client.websocket_connect("/ws") as ws:
        data = init(ws, "alice")

    assert data == {"userId": "alice", "messages": []}


def test_bad_token_reports_auth_error(client):
    with client.websocket_connect("/ws") as ws:
        send(ws, "init", make_token("alice", team_id="T1", secret="wrong-secret"))

        assert ws.receive_json()["type"] == "authError"

        # the socket stays usable
        init(ws, "alice")


def test_expired_token_reports_reason(client):
    with client.websocket_connect("/ws") as ws:
        send(ws, "init", {"token": token_for("alice", expires_in=-10)})

        assert ws.receive_json() == {"type": "authError", "data": "Token expired"}


def test_invalid_json_and_unknown_action(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("{not json")
        assert ws.receive_json() == {"type": "error", "data": "Invalid JSON"}

        send(ws, "dance")
        assert ws.receive_json() == {"type": "error", "data": "Unknown action: dance"}


def test_message_before_init_is_rejected(client):
    with client.websocket_connect("/ws") as ws:
        send(ws, "message", {"text": "hello?"})

        assert ws.receive_json() == {"type": "messageError", "data": "Connection is not initialized"}


def test_team_chat_round_trip(client):
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        init(alice, "alice")
        init(bob, "bob")

        send(alice, "message", {"text": "standup in 5"})
        to_alice = alice.receive_json()
        to_bob = bob.receive_json()
        assert to_alice == to_bob
        assert to_bob["type"] == "message"
        assert to_bob["data"]["sender"]["name"] == "Alice"
        message_id = to_bob["data"]["id"]

        send(bob, "editMessage", {"id": message_id, "text": "hijacked"})
        assert bob.receive_json() == {
            "type": "messageError",
            "data": "Only the author can change this message",
        }

        send(alice, "editMessage", {"id": message_id, "text": "standup in 10"})
        assert alice.receive_json()["type"] == "messageUpdated"
        assert bob.receive_json()["data"]["text"] == "standup in 10"

        send(bob, "react-to-message", {"messageId": message_id, "emoji": "👍"})
        reaction = alice.receive_json()
        assert reaction["type"] == "message-reaction"
        assert reaction["data"]["reactions"][0]["user"]["id"] == "bob"
        bob.receive_json()

        send(alice, "deleteMessage", message_id)
        assert alice.receive_json() == {"type": "messageDeleted", "data": message_id}
        assert bob.receive_json() == {"type": "messageDeleted", "data": message_id}

    assert state.store.collections["messages"] == {}


def test_invalid_payload_is_reported(client):
    with client.websocket_connect("/ws") as ws:
        init(ws, "alice")

        send(ws, "message", {"text": "   "})
        frame = ws.receive_json()

        assert frame["type"] == "messageError"
        assert frame["data"].startswith("Invalid")


def test_personal_chat_flow(client):
    conv = conversation_id("alice", "bob")

    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        init_personal(alice, "alice")
        init_personal(bob, "bob")

        send(alice, "join-personal-conversation", {"teammateId": "bob"})
        snapshot = alice.receive_json()
        assert snapshot["type"] == "personal-conversation-messages"
        assert snapshot["data"]["conversationId"] == conv

        send(bob, "join-personal-conversation", "alice")
        assert bob.receive_json()["type"] == "personal-conversation-messages"

        send(alice, "send-personal-message", {"text": "lunch?"})
        # conversation room first, then each presence room
        assert [alice.receive_json()["type"] for _ in range(2)] == ["new-personal-message", "conversation-updated"]
        delivered = bob.receive_json()
        assert delivered["type"] == "new-personal-message"
        assert delivered["data"]["receiver"]["id"] == "bob"
        assert delivered["data"]["isRead"] is False
        assert bob.receive_json()["type"] == "conversation-updated"

        send(bob, "mark-personal-messages-read", {"teammateId": "alice"})
        assert alice.receive_json() == {
            "type": "messages-read",
            "data": {"conversationId": conv, "readerId": "bob", "count": 1},
        }


def test_personal_partner_in_other_team(client):
    with client.websocket_connect("/ws") as ws:
        init_personal(ws, "alice")

        send(ws, "join-personal-conversation", {"teammateId": "dave"})

        assert ws.receive_json() == {
            "type": "personal-chat-error",
            "data": "Team member not found or not in same team",
        }


def test_disconnect_leaves_all_rooms(client):
    with client.websocket_connect("/ws") as ws:
        init_personal(ws, "alice")
        assert client.get("/rooms").json() == {"team:T1": 1, "personal-chat:alice": 1}

    assert client.get("/rooms").json() == {}
