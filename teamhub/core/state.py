# teamhub/core/state.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from teamhub.core.config import settings
from teamhub.services.chat_service import ChatService
from teamhub.services.connection_manager import ConnectionManager
from teamhub.services.conversation_router import ConversationRouter
from teamhub.services.document_store import DocumentStore
from teamhub.services.message_store import MessageStoreGateway
from teamhub.services.notification_service import NotificationEmitter
from teamhub.services.room_registry import RoomRegistry

# Global singletons for app state, rebuilt together by reset()
store: DocumentStore
room_registry: RoomRegistry
gateway: MessageStoreGateway
connection_manager: ConnectionManager
conversation_router: ConversationRouter
chat_service: ChatService
notification_emitter: NotificationEmitter

# Metrics
app_start_time: datetime


def reset(document_store: Optional[DocumentStore] = None) -> None:
    """Wire every service around one store and one room registry."""
    global store, room_registry, gateway, connection_manager
    global conversation_router, chat_service, notification_emitter, app_start_time

    store = document_store if document_store is not None else DocumentStore(settings.STORE_PATH)
    room_registry = RoomRegistry()
    gateway = MessageStoreGateway(store)

    connection_manager = ConnectionManager(room_registry, gateway, settings.SNAPSHOT_LIMIT)
    conversation_router = ConversationRouter(room_registry, gateway, settings.SNAPSHOT_LIMIT)
    chat_service = ChatService(room_registry, gateway)
    notification_emitter = NotificationEmitter(room_registry, store, settings.GLOBAL_ID)

    app_start_time = datetime.now(timezone.utc)


reset()
