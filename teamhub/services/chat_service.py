# teamhub/services/chat_service.py

from __future__ import annotations

import logging
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict

from teamhub.core.errors import (
    AuthenticationFailure,
    AuthorizationFailure,
    NotFound,
    OwnershipViolation,
)
from teamhub.models.models import (
    DeleteMessageRequest,
    EditMessageRequest,
    MessageView,
    ReactionRequest,
    SendMessageRequest,
)
from teamhub.services.connection_manager import (
    GLOBAL_ROOM,
    Connection,
    presence_room,
    team_room,
    user_room,
)
from teamhub.services.conversation_router import conversation_room
from teamhub.services.message_store import (
    GROUP_MESSAGES,
    PERSONAL_MESSAGES,
    MessageStoreGateway,
    utc_now,
)
from teamhub.services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)


class ChatChannel(BaseModel):
    """Collection and event names of one chat flavour."""

    model_config = ConfigDict(frozen=True)

    name: str
    collection: str
    created: str
    updated: str
    deleted: str
    reaction: str
    error: str

    @property
    def personal(self) -> bool:
        return self.collection == PERSONAL_MESSAGES


GROUP_CHAT = ChatChannel(
    name="group",
    collection=GROUP_MESSAGES,
    created="message",
    updated="messageUpdated",
    deleted="messageDeleted",
    reaction="message-reaction",
    error="messageError",
)

PERSONAL_CHAT = ChatChannel(
    name="personal",
    collection=PERSONAL_MESSAGES,
    created="new-personal-message",
    updated="personal-message-updated",
    deleted="personal-message-deleted",
    reaction="personal-message-reaction",
    error="personal-chat-error",
)


def message_room(message: Dict[str, Any]) -> str:
    """The room a stored message belongs to, derived from the message itself."""
    if message.get("conversationId"):
        return conversation_room(message["conversationId"])
    if message.get("scope") == "team":
        return team_room(message["teamId"])
    if message.get("scope") == "global":
        return GLOBAL_ROOM
    return user_room(message["sender"])


def toggle_reaction(reactions: List[Dict[str, Any]], user_id: str, emoji: str) -> List[Dict[str, Any]]:
    """
    Apply one user's reaction click.

    Same emoji again removes it, a different emoji replaces the user's
    previous one, otherwise the reaction is appended. A user never ends up
    with more than one reaction on a message.
    """
    result = [dict(r) for r in reactions]
    for index, reaction in enumerate(result):
        if reaction["user"] != user_id:
            continue
        if reaction["emoji"] == emoji:
            del result[index]
        else:
            reaction["emoji"] = emoji
        return result
    result.append({"user": user_id, "emoji": emoji})
    return result


# ============================================================================
# CHAT SERVICE (send / edit / delete / react + broadcast)
# ============================================================================

class ChatService:
    """
    Message handlers for group and personal chat.

    Each handler persists through the gateway first and broadcasts second;
    a failed store call raises before anything is emitted. Stored state is
    re-read for every event, never carried across awaits from an earlier one.
    """

    def __init__(self, registry: RoomRegistry, gateway: MessageStoreGateway) -> None:
        self.registry = registry
        self.gateway = gateway
        self.message_count = 0

    @staticmethod
    def _require_registered(connection: Connection, channel: ChatChannel) -> None:
        state = connection.state
        if not state.registered:
            raise AuthenticationFailure("Connection is not initialized")
        if channel.personal and not state.personal_chat:
            raise AuthorizationFailure("Personal chat not initialized")

    async def _load(self, channel: ChatChannel, message_id: str) -> Dict[str, Any]:
        message = await self.gateway.get_message(channel.collection, message_id)
        if message is None:
            raise NotFound("Message not found")
        return message

    async def send(self, connection: Connection, channel: ChatChannel, request: SendMessageRequest) -> MessageView:
        self._require_registered(connection, channel)
        state = connection.state

        fields: Dict[str, Any] = {
            "text": request.text,
            "sender": state.user_id,
            "replyTo": request.replyTo,
            "scope": state.role,
            "teamId": state.team_id,
            "globalId": state.global_id,
        }

        if channel.personal:
            if not state.conversation_id or not state.partner_id:
                raise NotFound("No active conversation")
            fields.update(
                conversationId=state.conversation_id,
                receiver=state.partner_id,
                isRead=False,
                readAt=None,
            )

        room = message_room(fields)

        if request.replyTo:
            target = await self.gateway.get_message(channel.collection, request.replyTo)
            if target is None or message_room(target) != room:
                raise NotFound("Reply target not found")

        if request.fileUrl:
            fields.update(
                fileUrl=request.fileUrl,
                fileType=request.fileType,
                fileName=request.fileName,
                isFileMessage=True,
            )
            file_id = await self.gateway.find_own_file(state.user_id, request.fileUrl)
            if file_id:
                fields["fileRef"] = file_id

        saved = await self.gateway.create_message(channel.collection, fields)
        view = await self.gateway.resolve(channel.collection, saved)
        payload = view.model_dump()
        self.message_count += 1

        await self.registry.broadcast(room, channel.created, payload)

        if channel.personal:
            ping = {"conversationId": saved["conversationId"], "lastMessage": payload}
            for participant in (saved["sender"], saved["receiver"]):
                await self.registry.broadcast(presence_room(participant), "conversation-updated", ping)

        return view

    async def edit(self, connection: Connection, channel: ChatChannel, request: EditMessageRequest) -> MessageView:
        self._require_registered(connection, channel)

        message = await self._load(channel, request.messageId)
        if message["sender"] != connection.state.user_id:
            raise OwnershipViolation()

        updated = await self.gateway.update_message(
            channel.collection,
            request.messageId,
            {"text": request.text, "updatedAt": utc_now()},
        )
        if updated is None:
            raise NotFound("Message was deleted")

        view = await self.gateway.resolve(channel.collection, updated)
        await self.registry.broadcast(message_room(updated), channel.updated, view.model_dump())
        return view

    async def delete(self, connection: Connection, channel: ChatChannel, request: DeleteMessageRequest) -> None:
        self._require_registered(connection, channel)

        message = await self._load(channel, request.messageId)
        if message["sender"] != connection.state.user_id:
            raise OwnershipViolation()

        if not await self.gateway.delete_message(channel.collection, message):
            raise NotFound("Message was already deleted")

        await self.registry.broadcast(message_room(message), channel.deleted, message["id"])

    async def react(self, connection: Connection, channel: ChatChannel, request: ReactionRequest) -> List[Dict[str, Any]]:
        self._require_registered(connection, channel)
        user_id = connection.state.user_id

        message = await self._load(channel, request.messageId)
        room = message_room(message)
        if not self.registry.is_member(connection, room):
            raise AuthorizationFailure("Cannot react to a message outside your chat")

        reactions = toggle_reaction(message.get("reactions", []), user_id, request.emoji)
        updated = await self.gateway.update_message(channel.collection, message["id"], {"reactions": reactions})
        if updated is None:
            raise NotFound("Message was deleted")

        views = await self.gateway.resolve_reactions(updated["reactions"])
        payload = [v.model_dump() for v in views]
        await self.registry.broadcast(room, channel.reaction, {"messageId": message["id"], "reactions": payload})
        return payload
