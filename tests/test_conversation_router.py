import pytest

from conftest import seed
from teamhub.core import state
from teamhub.core.errors import AuthorizationFailure, PartnerNotFound
from teamhub.services.conversation_router import conversation_id


@pytest.mark.parametrize("a, b", [("alice", "bob"), ("bob", "alice"), ("64f0c2", "64f0c1"), ("u-10", "u-9")])
def test_conversation_id_is_symmetric(a, b):
    assert conversation_id(a, b) == conversation_id(b, a)


def test_conversation_id_sorts_and_joins():
    assert conversation_id("bob", "alice") == "alice_bob"


def personal_message(conv_id, sender, receiver, i, is_read=False):
    stamp = f"2024-02-01T00:00:{i:02d}+00:00"
    return {
        "id": f"pm-{i}",
        "text": f"personal {i}",
        "sender": sender,
        "receiver": receiver,
        "conversationId": conv_id,
        "replyTo": None,
        "reactions": [],
        "scope": "team",
        "teamId": "T1",
        "globalId": None,
        "isRead": is_read,
        "readAt": None,
        "createdAt": stamp,
        "updatedAt": stamp,
    }


async def test_join_sends_snapshot_and_marks_partner_messages_read(login, store):
    conv = conversation_id("alice", "bob")
    seed(store, "personal_messages", personal_message(conv, "bob", "alice", 1))
    seed(store, "personal_messages", personal_message(conv, "alice", "bob", 2))

    conn = await login("alice", personal=True)
    joined = await state.conversation_router.join(conn, "bob")

    assert joined == conv
    assert conn.state.conversation_id == conv
    assert conn.state.partner_id == "bob"
    assert state.room_registry.is_member(conn, f"conversation:{conv}")

    [snapshot] = conn.websocket.events("personal-conversation-messages")
    assert snapshot["conversationId"] == conv
    assert snapshot["teammateId"] == "bob"
    assert [m["text"] for m in snapshot["messages"]] == ["personal 1", "personal 2"]

    from_bob = store.collections["personal_messages"]["pm-1"]
    from_alice = store.collections["personal_messages"]["pm-2"]
    assert from_bob["isRead"] is True
    assert from_bob["readAt"]
    assert from_alice["isRead"] is False


async def test_joining_new_conversation_leaves_previous_one(login):
    conn = await login("alice", personal=True)

    await state.conversation_router.join(conn, "bob")
    await state.conversation_router.join(conn, "carol")

    rooms = state.room_registry.rooms_of(conn)
    conversation_rooms = {r for r in rooms if r.startswith("conversation:")}
    assert conversation_rooms == {f"conversation:{conversation_id('alice', 'carol')}"}
    assert "team:T1" in rooms


async def test_rejoining_same_conversation_keeps_single_membership(login):
    conn = await login("alice", personal=True)

    await state.conversation_router.join(conn, "bob")
    await state.conversation_router.join(conn, "bob")

    room = f"conversation:{conversation_id('alice', 'bob')}"
    assert state.room_registry.members(room) == {conn}


@pytest.mark.parametrize("partner", ["dave", "alice", "ghost", "gina", ""])
async def test_partner_outside_scope_is_rejected(login, partner):
    conn = await login("alice", personal=True)

    with pytest.raises(PartnerNotFound):
        await state.conversation_router.join(conn, partner)

    assert not any(r.startswith("conversation:") for r in state.room_registry.rooms_of(conn))
    assert conn.state.conversation_id is None


async def test_global_users_chat_with_global_users_only(login):
    conn = await login("gina", personal=True)

    await state.conversation_router.join(conn, "gus")
    with pytest.raises(PartnerNotFound):
        await state.conversation_router.join(conn, "alice")

    assert conn.state.conversation_id == conversation_id("gina", "gus")


async def test_group_only_socket_cannot_join_conversation(login):
    conn = await login("alice")

    with pytest.raises(AuthorizationFailure):
        await state.conversation_router.join(conn, "bob")


async def test_leave_conversation(open_conversation):
    conn = await open_conversation("alice", "bob")

    state.conversation_router.leave(conn)

    assert conn.state.conversation_id is None
    assert state.room_registry.rooms_of(conn) == {"team:T1", "personal-chat:alice"}


async def test_mark_read_notifies_partner_presence_room(login, store):
    conv = conversation_id("alice", "bob")
    seed(store, "personal_messages", personal_message(conv, "bob", "alice", 1))
    seed(store, "personal_messages", personal_message(conv, "bob", "alice", 2))

    bob = await login("bob", personal=True)
    alice = await login("alice", personal=True)

    marked = await state.conversation_router.mark_read(alice, "bob")

    assert marked == 2
    assert bob.websocket.events("messages-read") == [
        {"conversationId": conv, "readerId": "alice", "count": 2}
    ]
    assert alice.websocket.events("messages-read") == []
