# teamhub/services/room_registry.py

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Set

if TYPE_CHECKING:
    from teamhub.services.connection_manager import Connection

logger = logging.getLogger(__name__)

# ============================================================================
# ROOM REGISTRY
# ============================================================================

class RoomRegistry:
    """
    In-process room membership table and fan-out.

    Every other component reaches rooms through this class only: join,
    leave, broadcast. Nothing is persisted; the table is rebuilt from the
    sockets' own init/join events and torn down on disconnect.

    Data Structures:
        rooms: Maps room name -> Set of connections in that room
               Example: {"team:T1": {conn1, conn2}, "global": {conn3}}

        connection_rooms: Maps connection -> Set of room names it joined
                          Example: {conn1: {"team:T1", "conversation:a_b"}}

    Scaling:
        - Single process only. Several processes would need an external
          pub/sub backplane to share membership.

    Ordering:
        broadcast() awaits each send in turn, so two broadcasts to the same
        room reach every member in the order they were issued.
    """

    def __init__(self) -> None:
        # Map: room name -> Set[Connection]
        self.rooms: Dict[str, Set[Connection]] = {}

        # Map: Connection -> Set[room names]
        self.connection_rooms: Dict[Connection, Set[str]] = {}

    def add_connection(self, connection: Connection) -> None:
        """Start tracking a freshly accepted connection (member of no room yet)."""
        self.connection_rooms.setdefault(connection, set())

    def remove_connection(self, connection: Connection) -> Set[str]:
        """
        Drop a connection from every room it joined.

        Returns:
            The room names it was removed from

        Cleanup:
            1. Remove from all rooms they were in
            2. Delete empty rooms from memory
            3. Remove from tracking dict
        """
        joined = self.connection_rooms.pop(connection, set())
        for room in joined:
            members = self.rooms.get(room)
            if members is None:
                continue
            members.discard(connection)
            if not members:
                del self.rooms[room]
        return joined

    def join(self, connection: Connection, room: str) -> int:
        """
        Add a connection to a room.

        Returns:
            Member count of the room after joining (0 if the connection is
            no longer tracked, i.e. it already disconnected)
        """
        if connection not in self.connection_rooms:
            return 0  # Connection already closed

        self.rooms.setdefault(room, set()).add(connection)
        self.connection_rooms[connection].add(room)

        member_count = len(self.rooms[room])
        logger.info("→ %s joined '%s' (%s members)", connection, room, member_count)
        return member_count

    def leave(self, connection: Connection, room: str) -> bool:
        """Remove a connection from one room. Returns False if it was not a member."""
        joined = self.connection_rooms.get(connection)
        if not joined or room not in joined:
            return False

        joined.discard(room)
        members = self.rooms.get(room)
        if members is not None:
            members.discard(connection)
            # Clean up empty room
            if not members:
                del self.rooms[room]

        logger.info("← %s left '%s'", connection, room)
        return True

    def is_member(self, connection: Connection, room: str) -> bool:
        return room in self.connection_rooms.get(connection, set())

    def rooms_of(self, connection: Connection) -> Set[str]:
        return set(self.connection_rooms.get(connection, set()))

    def members(self, room: str) -> Set[Connection]:
        return set(self.rooms.get(room, set()))

    async def broadcast(self, room: str, event_type: str, data: Any) -> int:
        """
        Emit an event to every connection currently in a room.

        Args:
            room: Target room name
            event_type: Server event name, e.g. "message" or "messageDeleted"
            data: JSON-serializable payload

        Returns:
            Number of connections the event was delivered to

        Error Handling:
            If a send fails, the connection is treated as gone and removed
            from every room.
        """
        if room not in self.rooms:
            logger.info("[routing] Skipped %s: room=%s has 0 members", event_type, room)
            return 0

        connections = list(self.rooms[room])  # Copy to avoid modification during iteration
        logger.info("📨 %s → room %s: %d clients", event_type, room, len(connections))
        return await self._deliver(connections, event_type, data)

    async def broadcast_all(self, event_type: str, data: Any) -> int:
        """Emit an event to every tracked connection regardless of rooms."""
        connections = list(self.connection_rooms.keys())
        logger.info("📣 %s → all: %d clients", event_type, len(connections))
        return await self._deliver(connections, event_type, data)

    async def _deliver(self, connections, event_type: str, data: Any) -> int:
        disconnected = set()
        delivered = 0

        for connection in connections:
            try:
                await connection.send(event_type, data)
                delivered += 1
            except Exception as e:
                logger.error("Send error to %s: %s", connection, e)
                # Mark for cleanup
                disconnected.add(connection)

        # Clean up failed connections
        for connection in disconnected:
            self.remove_connection(connection)

        return delivered

    def get_rooms_info(self) -> Dict[str, int]:
        """
        Room name -> member count for every room with members.

        Used by the /rooms and /metrics endpoints.
        """
        return {room: len(members) for room, members in self.rooms.items()}
