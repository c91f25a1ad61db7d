# teamhub/api/routes/notifications.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from teamhub.core import state
from teamhub.models.models import (
    CreateNotificationRequest,
    DomainEventRequest,
    Priority,
    TokenIdentity,
)
from teamhub.services.auth_service import get_current_user
from teamhub.services.notification_service import notification_for_domain_event

router = APIRouter(tags=["Notifications"])

# ============================================================================
# NOTIFICATION ENDPOINTS
# ============================================================================

@router.get("/notifications")
async def list_notifications(
    type: Optional[str] = None,
    priority: Optional[Priority] = None,
    unread: bool = False,
    current_user: TokenIdentity = Depends(get_current_user),
):
    """
    Notifications visible to the caller, newest first.

    - single: only their own
    - team: their team's shared notifications plus their own
    - global: every global notification plus their own

    Each item carries "isRead" and "readCount" for the caller.
    """
    return await state.notification_emitter.list_for(current_user, type=type, priority=priority, unread=unread)


@router.post("/notifications", status_code=201)
async def create_notification(
    request: CreateNotificationRequest,
    current_user: TokenIdentity = Depends(get_current_user),
):
    """
    Create a notification and push it to every connected socket.

    Side Effects:
        - Notification saved to the store
        - "notification" event sent to all WebSocket clients
    """
    record = state.notification_emitter.record_for_request(current_user, request)
    return await state.notification_emitter.emit(record)


@router.patch("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    current_user: TokenIdentity = Depends(get_current_user),
):
    updated = await state.notification_emitter.mark_read(notification_id, current_user.user_id)
    if updated is None:
        raise HTTPException(status_code=404, detail="Notification not found")

    return {**updated, "isRead": True, "readCount": len(updated.get("readBy", []))}


@router.post("/events/notify", status_code=201)
async def notify_domain_event(
    event: DomainEventRequest,
    current_user: TokenIdentity = Depends(get_current_user),
):
    """
    Hook for the calendar, note and attendee services: turn a domain change
    into a notification and broadcast it.

    Raises:
        HTTPException: 403 if the caller reports a change made by someone else
    """
    if event.userId != current_user.user_id:
        raise HTTPException(status_code=403, detail="Cannot report changes made by another user")

    return await state.notification_emitter.emit(notification_for_domain_event(event))
