# teamhub/services/notification_service.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from teamhub.models.models import (
    CreateNotificationRequest,
    DomainEventRequest,
    NotificationRecord,
    TokenIdentity,
)
from teamhub.services.document_store import DocumentStore, Filter
from teamhub.services.message_store import NOTIFICATIONS, guarded, utc_now
from teamhub.services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)

NOTIFICATION_LIMIT = 100


def visibility_filter(user: TokenIdentity) -> Filter:
    """Notifications a user may list: their own plus their scope's shared ones."""
    own = {"scope": "single", "user": user.user_id}
    if user.role == "team" and user.team_id:
        return {"$or": [{"scope": "team", "teamId": user.team_id}, own]}
    if user.role == "global":
        return {"$or": [{"scope": "global"}, own]}
    return own


def notification_for_domain_event(event: DomainEventRequest) -> NotificationRecord:
    """
    Build the notification text for a calendar / note / attendee change.

    Example:
        kind="event-created", actorName="Asha", title="Standup"
        -> 'Asha created event "Standup"'
    """
    kind = event.kind
    actor = event.actorName

    if kind.startswith("event-"):
        verb = kind.split("-", 1)[1]
        return NotificationRecord(
            type="event",
            text=f'{actor} {verb} event "{event.title}"',
            user=event.userId,
            eventId=event.relatedId,
        )

    if kind == "note-created":
        text = f'{actor} created a {event.noteType} note: "{event.title}"'
    elif kind == "note-updated":
        text = f"{actor} updated a {event.noteType} note"
    elif kind == "note-deleted":
        text = f"{actor} deleted a {event.noteType} note"
    else:
        status = event.status or "responded"
        return NotificationRecord(
            type="attendee",
            text=f'{actor} marked "{status}" for "{event.title}"',
            user=event.userId,
            eventId=event.relatedId,
        )

    return NotificationRecord(type="comment", text=text, user=event.userId, noteId=event.relatedId)


# ============================================================================
# NOTIFICATION EMITTER
# ============================================================================

class NotificationEmitter:
    """
    Persist-then-broadcast channel for domain notifications.

    Notifications go to every connected socket, not to a room: clients
    filter by type and priority themselves.
    """

    def __init__(self, registry: RoomRegistry, store: DocumentStore, global_id: str) -> None:
        self.registry = registry
        self.store = store
        self.global_id = global_id

    async def emit(self, record: NotificationRecord) -> Dict[str, Any]:
        document = record.model_dump(exclude={"id"} if record.id is None else set())
        document["time"] = document.get("time") or utc_now()

        saved = await guarded("save notification", self.store.create(NOTIFICATIONS, document))
        delivered = await self.registry.broadcast_all("notification", saved)
        logger.info("🔔 %s notification %s sent to %d sockets", saved["type"], saved["id"], delivered)
        return saved

    def record_for_request(self, user: TokenIdentity, request: CreateNotificationRequest) -> NotificationRecord:
        """Scope a user-created notification the way their role allows."""
        record = NotificationRecord(
            type=request.type,
            text=request.text,
            user=user.user_id,
            eventId=request.eventId,
            taskId=request.taskId,
            priority=request.priority,
        )
        if request.globalScope and user.role == "global":
            record.scope = "global"
            record.globalId = self.global_id
        elif request.targetTeam and user.role == "team":
            record.scope = "team"
            record.teamId = user.team_id
        return record

    async def list_for(
        self,
        user: TokenIdentity,
        type: Optional[str] = None,
        priority: Optional[str] = None,
        unread: bool = False,
    ) -> List[Dict[str, Any]]:
        filter = visibility_filter(user)
        if type and type != "all":
            filter["type"] = type
        if priority:
            filter["priority"] = priority

        found = await guarded(
            "load notifications",
            self.store.find_many(NOTIFICATIONS, filter, sort=[("time", -1)]),
        )

        result = []
        for notification in found:
            read_by = notification.get("readBy", [])
            is_read = user.user_id in read_by
            if unread and is_read:
                continue
            result.append({**notification, "isRead": is_read, "readCount": len(read_by)})
            if len(result) == NOTIFICATION_LIMIT:
                break
        return result

    async def mark_read(self, notification_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        notification = await guarded("load notification", self.store.find_by_id(NOTIFICATIONS, notification_id))
        if notification is None:
            return None

        read_by = notification.get("readBy", [])
        if user_id not in read_by:
            read_by.append(user_id)
        return await guarded(
            "update notification",
            self.store.update_by_id(NOTIFICATIONS, notification_id, {"readBy": read_by}),
        )
