from conftest import BrokenWebSocket, FakeWebSocket
from teamhub.core import state


async def test_join_leave_and_empty_room_cleanup(connect):
    registry = state.room_registry
    conn = await connect()

    assert registry.join(conn, "team:T1") == 1
    assert registry.is_member(conn, "team:T1")
    assert registry.get_rooms_info() == {"team:T1": 1}

    assert registry.leave(conn, "team:T1") is True
    assert registry.leave(conn, "team:T1") is False
    assert "team:T1" not in registry.rooms


async def test_join_after_disconnect_is_ignored(connect):
    registry = state.room_registry
    conn = await connect()
    registry.remove_connection(conn)

    assert registry.join(conn, "global") == 0
    assert registry.members("global") == set()


async def test_broadcast_reaches_only_room_members_in_order(connect):
    registry = state.room_registry
    inside, outside = await connect(), await connect()
    registry.join(inside, "team:T1")
    registry.join(outside, "team:T2")

    await registry.broadcast("team:T1", "message", {"n": 1})
    await registry.broadcast("team:T1", "message", {"n": 2})

    assert inside.websocket.events("message") == [{"n": 1}, {"n": 2}]
    assert outside.websocket.sent == []


async def test_broadcast_to_empty_room_delivers_nothing():
    assert await state.room_registry.broadcast("team:nobody", "message", {}) == 0


async def test_failed_send_removes_connection_everywhere(connect):
    registry = state.room_registry
    healthy = await connect(FakeWebSocket())
    broken = await connect(BrokenWebSocket())
    for conn in (healthy, broken):
        registry.join(conn, "global")
    registry.join(broken, "personal-chat:x")

    delivered = await registry.broadcast("global", "message", {"text": "hi"})

    assert delivered == 1
    assert broken not in registry.connection_rooms
    assert registry.members("global") == {healthy}
    assert "personal-chat:x" not in registry.rooms


async def test_broadcast_all_ignores_rooms(connect):
    registry = state.room_registry
    anonymous = await connect()
    member = await connect()
    registry.join(member, "team:T1")

    assert await registry.broadcast_all("notification", {"id": "n1"}) == 2
    assert anonymous.websocket.events("notification") == [{"id": "n1"}]
    assert member.websocket.events("notification") == [{"id": "n1"}]
