# teamhub/services/conversation_router.py

from __future__ import annotations

import logging
from typing import Any, Dict

from teamhub.core.errors import AuthorizationFailure, PartnerNotFound
from teamhub.services.connection_manager import Connection, presence_room
from teamhub.services.message_store import PERSONAL_MESSAGES, MessageStoreGateway
from teamhub.services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)


def conversation_id(first_user_id: str, second_user_id: str) -> str:
    """Order-independent id of the 1:1 conversation between two users."""
    low, high = sorted([str(first_user_id), str(second_user_id)])
    return f"{low}_{high}"


def conversation_room(conv_id: str) -> str:
    return f"conversation:{conv_id}"


# ============================================================================
# CONVERSATION ROUTER
# ============================================================================

class ConversationRouter:
    """
    Moves personal-chat connections between conversation rooms.

    A connection holds at most one conversation room at a time: joining a
    new conversation leaves the previous one first.
    """

    def __init__(self, registry: RoomRegistry, gateway: MessageStoreGateway, snapshot_limit: int = 100) -> None:
        self.registry = registry
        self.gateway = gateway
        self.snapshot_limit = snapshot_limit

    @staticmethod
    def require_personal_chat(connection: Connection) -> None:
        state = connection.state
        if not state.registered or not state.personal_chat:
            raise AuthorizationFailure("Personal chat not initialized")
        if state.role not in ("team", "global"):
            raise AuthorizationFailure("Personal chat is only available to team and global users")

    async def resolve_partner(self, connection: Connection, partner_id: str) -> Dict[str, Any]:
        """
        Load the partner and check it shares the connection's scope.

        Raises:
            PartnerNotFound: unknown user, self, or a user outside the scope
        """
        state = connection.state
        if not partner_id or partner_id == state.user_id:
            raise PartnerNotFound()

        partner = await self.gateway.get_user(partner_id)
        if partner is None or partner.get("role") != state.role:
            raise PartnerNotFound()
        if state.role == "team" and str(partner.get("teamId")) != state.team_id:
            raise PartnerNotFound("Team member not found or not in same team")
        return partner

    async def join(self, connection: Connection, partner_id: str) -> str:
        """
        Handle `join-personal-conversation`.

        Returns:
            The conversation id joined
        """
        self.require_personal_chat(connection)
        await self.resolve_partner(connection, partner_id)

        state = connection.state
        conv_id = conversation_id(state.user_id, partner_id)

        if state.conversation_id and state.conversation_id != conv_id:
            self.registry.leave(connection, conversation_room(state.conversation_id))

        self.registry.join(connection, conversation_room(conv_id))
        state.conversation_id = conv_id
        state.partner_id = partner_id

        messages = await self.gateway.recent_messages(
            PERSONAL_MESSAGES, {"conversationId": conv_id}, self.snapshot_limit
        )
        views = await self.gateway.resolve_many(PERSONAL_MESSAGES, messages)
        await connection.send(
            "personal-conversation-messages",
            {
                "conversationId": conv_id,
                "messages": [v.model_dump() for v in views],
                "teammateId": partner_id,
            },
        )

        marked = await self.gateway.mark_conversation_read(conv_id, partner_id, state.user_id)
        if marked:
            logger.info("%s read %d messages in %s", connection, marked, conv_id)
        return conv_id

    def leave(self, connection: Connection) -> None:
        """Handle `leave-personal-conversation`."""
        state = connection.state
        if state.conversation_id:
            self.registry.leave(connection, conversation_room(state.conversation_id))
        state.conversation_id = None
        state.partner_id = None

    async def mark_read(self, connection: Connection, partner_id: str) -> int:
        """
        Handle `mark-personal-messages-read`: mark the partner's messages read
        and tell the partner's presence room.
        """
        self.require_personal_chat(connection)
        await self.resolve_partner(connection, partner_id)

        state = connection.state
        conv_id = conversation_id(state.user_id, partner_id)
        marked = await self.gateway.mark_conversation_read(conv_id, partner_id, state.user_id)

        await self.registry.broadcast(
            presence_room(partner_id),
            "messages-read",
            {"conversationId": conv_id, "readerId": state.user_id, "count": marked},
        )
        return marked
