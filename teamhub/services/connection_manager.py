# teamhub/services/connection_manager.py

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import WebSocket

from teamhub.core.errors import AuthenticationFailure, AuthorizationFailure
from teamhub.models.models import ConnectionState, TokenIdentity
from teamhub.services.auth_service import verify_token
from teamhub.services.message_store import GROUP_MESSAGES, MessageStoreGateway, group_scope_filter
from teamhub.services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)

GLOBAL_ROOM = "global"


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def team_room(team_id: str) -> str:
    return f"team:{team_id}"


def presence_room(user_id: str) -> str:
    return f"personal-chat:{user_id}"


def audience_room_for(identity: TokenIdentity) -> str:
    """
    The single audience room a scope maps to.

    Raises:
        AuthenticationFailure: team role without a team id (misconfigured account)
    """
    if identity.role == "team":
        if not identity.team_id:
            raise AuthenticationFailure("Team user has no team assigned")
        return team_room(identity.team_id)
    if identity.role == "global":
        return GLOBAL_ROOM
    return user_room(identity.user_id)


# ============================================================================
# CONNECTION
# ============================================================================

class Connection:
    """A live socket plus the state the registrar recorded for it."""

    def __init__(self, websocket: WebSocket, state: ConnectionState) -> None:
        self.websocket = websocket
        self.state = state

    async def send(self, event_type: str, data: Any) -> None:
        await self.websocket.send_json({"type": event_type, "data": data})

    def __repr__(self) -> str:
        return f"<Connection {self.state.connection_id[:8]} user={self.state.user_id or 'anonymous'}>"


# ============================================================================
# CONNECTION REGISTRAR
# ============================================================================

class ConnectionManager:
    """
    Authenticates sockets and assigns them to their audience room.

    Lifecycle:
        1. connect(): accept the socket, track it with an empty ConnectionState
        2. init() / init_personal_chat(): verify the token, join the audience
           room (plus the personal-chat presence room), send the snapshot
        3. disconnect(): drop it from every room

    A socket that never sends a valid token stays in no room and receives
    nothing but its own error events (and notifications, which go to every
    socket).
    """

    def __init__(self, registry: RoomRegistry, gateway: MessageStoreGateway, snapshot_limit: int = 100) -> None:
        self.registry = registry
        self.gateway = gateway
        self.snapshot_limit = snapshot_limit

    async def connect(self, websocket: WebSocket) -> Connection:
        await websocket.accept()

        connection = Connection(websocket, ConnectionState(connection_id=uuid.uuid4().hex))
        self.registry.add_connection(connection)

        logger.info("✓ Socket %s connected. Total: %d", connection, len(self.registry.connection_rooms))
        return connection

    def disconnect(self, connection: Connection) -> None:
        rooms = self.registry.remove_connection(connection)
        logger.info(
            "✗ Socket %s disconnected (left %d rooms). Total: %d",
            connection,
            len(rooms),
            len(self.registry.connection_rooms),
        )

    async def init(self, connection: Connection, token: Any) -> None:
        """
        Handle `init`: authenticate, join the audience room, send `initMessages`.

        Raises:
            AuthenticationFailure: bad token or misconfigured scope
            PersistenceFailure: snapshot could not be loaded

            Nothing is joined in either case.
        """
        identity = verify_token(token)
        room = audience_room_for(identity)

        # Load before joining: a failed load leaves the socket where it was
        messages = await self.gateway.recent_messages(
            GROUP_MESSAGES, group_scope_filter(identity), self.snapshot_limit
        )
        views = await self.gateway.resolve_many(GROUP_MESSAGES, messages)

        self._register(connection, identity, room)

        await connection.send(
            "initMessages",
            {"userId": identity.user_id, "messages": [v.model_dump() for v in views]},
        )

    async def init_personal_chat(self, connection: Connection, token: Any) -> None:
        """
        Handle `init-personal-chat`: like init, restricted to team and global
        users, and also joins the user's personal-chat presence room.
        """
        identity = verify_token(token)
        if identity.role == "single":
            raise AuthorizationFailure("Personal chat is only available to team and global users")

        room = audience_room_for(identity)
        self._register(connection, identity, room)

        connection.state.personal_chat = True
        self.registry.join(connection, presence_room(identity.user_id))

        await connection.send(
            "personal-chat-initialized",
            {"userId": identity.user_id, "role": identity.role},
        )

    def _register(self, connection: Connection, identity: TokenIdentity, room: str) -> None:
        state = connection.state

        previous = (state.user_id, state.role, state.team_id, state.global_id)
        current = (identity.user_id, identity.role, identity.team_id, identity.global_id)

        if state.user_id is not None and previous != current:
            # New user or new scope: nothing of the old identity survives
            for joined in self.registry.rooms_of(connection):
                self.registry.leave(connection, joined)
            state.personal_chat = False
            state.conversation_id = None
            state.partner_id = None

        state.user_id = identity.user_id
        state.name = identity.name
        state.role = identity.role
        state.team_id = identity.team_id
        state.global_id = identity.global_id
        state.audience_room = room

        self.registry.join(connection, room)
        logger.info("🔐 %s registered as %s in %s", connection, identity.role, room)
