# teamhub/services/message_store.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, Iterable, List, Optional, TypeVar, Union

from teamhub.core.errors import ChatError, PersistenceFailure
from teamhub.models.models import (
    ConnectionState,
    FileView,
    MessageView,
    ReactionView,
    ReplyView,
    TokenIdentity,
    UserRef,
)
from teamhub.services.document_store import DocumentStore, Filter

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Collection names
GROUP_MESSAGES = "messages"
PERSONAL_MESSAGES = "personal_messages"
FILES = "files"
USERS = "users"
NOTIFICATIONS = "notifications"

MESSAGE_COLLECTIONS = (GROUP_MESSAGES, PERSONAL_MESSAGES)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def guarded(operation: str, awaitable: Awaitable[T]) -> T:
    """Await a store call, turning storage exceptions into PersistenceFailure."""
    try:
        return await awaitable
    except ChatError:
        raise
    except Exception as e:
        logger.exception("Store operation failed: %s", operation)
        raise PersistenceFailure(f"Could not {operation}") from e


def group_scope_filter(state: Union[ConnectionState, TokenIdentity]) -> Filter:
    """Group messages visible to a scope (a connection or a freshly verified identity)."""
    if state.role == "team":
        return {"scope": "team", "teamId": state.team_id}
    if state.role == "global":
        return {"scope": "global", "globalId": state.global_id}
    return {"scope": "single", "sender": state.user_id}


# ============================================================================
# MESSAGE STORE GATEWAY
# ============================================================================

class MessageStoreGateway:
    """
    Persistence boundary for chat messages, files and users.

    Writes go straight to the document store; reads come back either as raw
    documents (for ownership / routing checks) or resolved into MessageView
    with sender, reply target, reaction users and file record filled in.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # ------------------------------------------------------------------ users

    async def get_user(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        return await guarded("load user", self.store.find_by_id(USERS, user_id))

    async def user_ref(self, user_id: str, cache: Optional[Dict[str, UserRef]] = None) -> UserRef:
        if cache is not None and user_id in cache:
            return cache[user_id]
        user = await self.get_user(user_id)
        ref = UserRef(
            id=user_id,
            name=user.get("name") if user else None,
            email=user.get("email") if user else None,
        )
        if cache is not None:
            cache[user_id] = ref
        return ref

    # --------------------------------------------------------------- messages

    async def get_message(self, collection: str, message_id: str) -> Optional[Dict[str, Any]]:
        return await guarded("load message", self.store.find_by_id(collection, message_id))

    async def create_message(self, collection: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        now = utc_now()
        document = {"reactions": [], **fields, "createdAt": now, "updatedAt": now}
        return await guarded("save message", self.store.create(collection, document))

    async def update_message(self, collection: str, message_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await guarded("update message", self.store.update_by_id(collection, message_id, changes))

    async def delete_message(self, collection: str, message: Dict[str, Any]) -> bool:
        """
        Remove a message, then its file record if nothing references it any more.

        Returns:
            False if the message was already gone
        """
        deleted = await guarded("delete message", self.store.delete_by_id(collection, message["id"]))
        if not deleted:
            return False

        file_id = message.get("fileRef")
        if file_id:
            remaining = await self.count_file_references(file_id)
            if remaining == 0:
                await guarded("delete file", self.store.delete_by_id(FILES, file_id))
                logger.info("🗑 File %s removed with its last message", file_id)
            else:
                logger.info("File %s still referenced by %d messages", file_id, remaining)
        return True

    async def recent_messages(self, collection: str, filter: Filter, limit: int) -> List[Dict[str, Any]]:
        """Most recent `limit` matching messages, returned oldest-first."""
        newest_first = await guarded(
            "load messages",
            self.store.find_many(collection, filter, sort=[("createdAt", -1)], limit=limit),
        )
        newest_first.reverse()
        return newest_first

    async def unread_messages(self, conversation_id: str, sender_id: str, receiver_id: str) -> List[Dict[str, Any]]:
        return await guarded(
            "load unread messages",
            self.store.find_many(
                PERSONAL_MESSAGES,
                {
                    "conversationId": conversation_id,
                    "sender": sender_id,
                    "receiver": receiver_id,
                    "isRead": False,
                },
            ),
        )

    async def mark_conversation_read(self, conversation_id: str, sender_id: str, receiver_id: str) -> int:
        """Mark sender -> receiver unread messages as read. Returns how many changed."""
        read_at = utc_now()
        marked = 0
        for message in await self.unread_messages(conversation_id, sender_id, receiver_id):
            updated = await guarded(
                "mark message read",
                self.store.update_by_id(PERSONAL_MESSAGES, message["id"], {"isRead": True, "readAt": read_at}),
            )
            if updated is not None:
                marked += 1
        return marked

    # ------------------------------------------------------------------ files

    async def find_own_file(self, owner_id: str, file_url: str) -> Optional[str]:
        """
        Id of the file record the sender uploaded for this URL, if any.

        Records are written by the upload service; a URL uploaded by someone
        else, or never registered, gets no file reference.
        """
        record = await guarded(
            "load file",
            self.store.find_one(FILES, {"fileUrl": file_url, "uploadedById": owner_id}),
        )
        return record["id"] if record else None

    async def count_file_references(self, file_id: str) -> int:
        total = 0
        for collection in MESSAGE_COLLECTIONS:
            total += await guarded("count file references", self.store.count_documents(collection, {"fileRef": file_id}))
        return total

    # -------------------------------------------------------------- resolving

    async def resolve_reactions(
        self,
        reactions: Iterable[Dict[str, Any]],
        cache: Optional[Dict[str, UserRef]] = None,
    ) -> List[ReactionView]:
        cache = {} if cache is None else cache
        return [
            ReactionView(emoji=r["emoji"], user=await self.user_ref(r["user"], cache))
            for r in reactions
        ]

    async def resolve(self, collection: str, message: Dict[str, Any], cache: Optional[Dict[str, UserRef]] = None) -> MessageView:
        """Fill in display fields for one stored message."""
        cache = {} if cache is None else cache

        reply = None
        if message.get("replyTo"):
            target = await self.get_message(collection, message["replyTo"])
            if target:
                reply = ReplyView(
                    id=target["id"],
                    text=target["text"],
                    sender=await self.user_ref(target["sender"], cache),
                )

        file_view = None
        if message.get("fileRef"):
            record = await guarded("load file", self.store.find_by_id(FILES, message["fileRef"]))
            if record:
                file_view = FileView(
                    id=record["id"],
                    fileUrl=record["fileUrl"],
                    filename=record.get("filename"),
                    type=record.get("type"),
                )

        receiver = None
        if message.get("receiver"):
            receiver = await self.user_ref(message["receiver"], cache)

        return MessageView(
            id=message["id"],
            text=message.get("text", ""),
            sender=await self.user_ref(message["sender"], cache),
            receiver=receiver,
            conversationId=message.get("conversationId"),
            replyTo=reply,
            reactions=await self.resolve_reactions(message.get("reactions", []), cache),
            file=file_view,
            fileUrl=message.get("fileUrl"),
            fileName=message.get("fileName"),
            fileType=message.get("fileType"),
            isFileMessage=bool(message.get("isFileMessage")),
            scope=message["scope"],
            teamId=message.get("teamId"),
            globalId=message.get("globalId"),
            isRead=message.get("isRead"),
            readAt=message.get("readAt"),
            createdAt=message["createdAt"],
            updatedAt=message["updatedAt"],
        )

    async def resolve_many(self, collection: str, messages: Iterable[Dict[str, Any]]) -> List[MessageView]:
        cache: Dict[str, UserRef] = {}
        return [await self.resolve(collection, message, cache) for message in messages]
