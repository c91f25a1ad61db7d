# teamhub/api/websocket.py

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Tuple, Type, TypeVar

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from teamhub.core import state
from teamhub.core.errors import ChatError, InvalidPayload
from teamhub.models.models import (
    DeleteMessageRequest,
    EditMessageRequest,
    PartnerRequest,
    ReactionRequest,
    SendMessageRequest,
)
from teamhub.services.chat_service import GROUP_CHAT, PERSONAL_CHAT
from teamhub.services.connection_manager import Connection

logger = logging.getLogger(__name__)

router = APIRouter()

M = TypeVar("M", bound=BaseModel)
Handler = Callable[[Connection, Any], Awaitable[None]]


def parse(model: Type[M], data: Any) -> M:
    """
    Validate an event payload at the boundary.

    Bare strings are accepted as the message id for delete events and as
    the partner id for partner events, the way clients send them.
    """
    if isinstance(data, str):
        if model is DeleteMessageRequest:
            data = {"messageId": data}
        elif model is PartnerRequest:
            data = {"teammateId": data}
    try:
        return model.model_validate(data if data is not None else {})
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "payload"
        raise InvalidPayload(f"Invalid {field}: {first.get('msg', 'invalid value')}")


def token_from(data: Any) -> Any:
    if isinstance(data, dict):
        return data.get("token")
    return data


# ============================================================================
# EVENT HANDLERS
# ============================================================================

async def on_init(connection: Connection, data: Any) -> None:
    await state.connection_manager.init(connection, token_from(data))


async def on_init_personal_chat(connection: Connection, data: Any) -> None:
    await state.connection_manager.init_personal_chat(connection, token_from(data))


async def on_join_conversation(connection: Connection, data: Any) -> None:
    request = parse(PartnerRequest, data)
    await state.conversation_router.join(connection, request.teammateId)


async def on_leave_conversation(connection: Connection, data: Any) -> None:
    state.conversation_router.leave(connection)


async def on_mark_read(connection: Connection, data: Any) -> None:
    request = parse(PartnerRequest, data)
    await state.conversation_router.mark_read(connection, request.teammateId)


def send_handler(channel) -> Handler:
    async def handler(connection: Connection, data: Any) -> None:
        await state.chat_service.send(connection, channel, parse(SendMessageRequest, data))
    return handler


def edit_handler(channel) -> Handler:
    async def handler(connection: Connection, data: Any) -> None:
        await state.chat_service.edit(connection, channel, parse(EditMessageRequest, data))
    return handler


def delete_handler(channel) -> Handler:
    async def handler(connection: Connection, data: Any) -> None:
        await state.chat_service.delete(connection, channel, parse(DeleteMessageRequest, data))
    return handler


def react_handler(channel) -> Handler:
    async def handler(connection: Connection, data: Any) -> None:
        await state.chat_service.react(connection, channel, parse(ReactionRequest, data))
    return handler


# action -> (handler, error event sent back to the originating socket)
HANDLERS: Dict[str, Tuple[Handler, str]] = {
    "init": (on_init, "authError"),
    "message": (send_handler(GROUP_CHAT), GROUP_CHAT.error),
    "editMessage": (edit_handler(GROUP_CHAT), GROUP_CHAT.error),
    "deleteMessage": (delete_handler(GROUP_CHAT), GROUP_CHAT.error),
    "react-to-message": (react_handler(GROUP_CHAT), GROUP_CHAT.error),
    "init-personal-chat": (on_init_personal_chat, PERSONAL_CHAT.error),
    "join-personal-conversation": (on_join_conversation, PERSONAL_CHAT.error),
    "leave-personal-conversation": (on_leave_conversation, PERSONAL_CHAT.error),
    "mark-personal-messages-read": (on_mark_read, PERSONAL_CHAT.error),
    "send-personal-message": (send_handler(PERSONAL_CHAT), PERSONAL_CHAT.error),
    "edit-personal-message": (edit_handler(PERSONAL_CHAT), PERSONAL_CHAT.error),
    "delete-personal-message": (delete_handler(PERSONAL_CHAT), PERSONAL_CHAT.error),
    "react-to-personal-message": (react_handler(PERSONAL_CHAT), PERSONAL_CHAT.error),
}


async def dispatch(connection: Connection, action: Any, data: Any) -> None:
    """
    Run one client event. Failures are reported to this socket only and
    never end the connection.
    """
    entry = HANDLERS.get(action)
    if entry is None:
        await connection.send("error", f"Unknown action: {action}")
        return

    handler, error_event = entry
    try:
        await handler(connection, data)
    except ChatError as e:
        logger.warning("%s rejected for %s: %s", action, connection, e.reason)
        await connection.send(error_event, e.reason)
    except Exception:
        logger.exception("Unhandled error in %s for %s", action, connection)
        await connection.send(error_event, "Internal server error")


# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for chat and notifications.

    Protocol:
    =========

    Client -> Server:
        {"action": "<event>", "data": <payload>}

        init                          "<token>"
        message                       {"text", "replyTo"?, "fileUrl"?, "fileType"?, "fileName"?}
        editMessage                   {"id", "text"}
        deleteMessage                 "<messageId>"
        react-to-message              {"messageId", "emoji", "userId"?}
        init-personal-chat            "<token>"
        join-personal-conversation    {"teammateId"}
        leave-personal-conversation   -
        mark-personal-messages-read   {"teammateId"}
        send-personal-message         same shape as message
        edit-personal-message         {"messageId", "text"}
        delete-personal-message       "<messageId>"
        react-to-personal-message     {"messageId", "emoji", "userId"?}

    Server -> Client:
        {"type": "<event>", "data": <payload>}

        initMessages, message, messageUpdated, messageDeleted,
        message-reaction, personal-chat-initialized,
        personal-conversation-messages, new-personal-message,
        personal-message-updated, personal-message-deleted,
        personal-message-reaction, conversation-updated, messages-read,
        notification

    Error:
        authError / messageError / personal-chat-error with a reason string,
        {"type": "error", ...} for invalid JSON or unknown actions.

    Lifecycle:
    ==========
    1. Socket connects, is accepted and tracked in no room
    2. init / init-personal-chat authenticates and joins the audience room
    3. Events are processed one at a time per socket
    4. On disconnect it is removed from all rooms
    """
    connection = await state.connection_manager.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()

            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await connection.send("error", "Invalid JSON")
                continue

            if not isinstance(message, dict):
                await connection.send("error", "Expected an object with an action")
                continue

            action = message.get("action")
            logger.debug("Websocket input from %s: action=%s", connection, action)
            await dispatch(connection, action, message.get("data"))

    except WebSocketDisconnect:
        logger.debug("Client %s closed the socket", connection)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
    finally:
        state.connection_manager.disconnect(connection)
