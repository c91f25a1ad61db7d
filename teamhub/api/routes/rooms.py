# teamhub/api/routes/rooms.py

from typing import Dict

from fastapi import APIRouter, HTTPException

from teamhub.core import state

router = APIRouter()

# ============================================================================
# ROOM INSPECTION ENDPOINTS
# ============================================================================

@router.get("/rooms")
async def list_rooms() -> Dict[str, int]:
    """
    List every room that currently has members.

    Rooms only exist while sockets are joined to them, so this is a view of
    the in-memory registry, not of stored data.

    Returns:
        Dict[str, int]: room name -> member count
    """
    return state.room_registry.get_rooms_info()


@router.get("/rooms/{room_name:path}")
async def get_room(room_name: str):
    """
    Member count of one room, e.g. /rooms/team:T1.

    Raises:
        HTTPException: 404 if nobody is in the room
    """
    members = state.room_registry.members(room_name)
    if not members:
        raise HTTPException(status_code=404, detail="Room not found")

    return {"room": room_name, "member_count": len(members)}
