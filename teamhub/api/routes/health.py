# teamhub/api/routes/health.py

from fastapi import APIRouter

from teamhub.core import state

router = APIRouter()

@router.get("/health")
async def health():
    """
    Liveness plus a quick look at the room table.

    "connections" counts every accepted socket, authenticated or not;
    "active_rooms_with_members" counts audience, conversation and presence
    rooms together (see /metrics for the split). "store" says whether the
    document store is file-backed or memory-only.
    """
    return {
        "status": "healthy",
        "connections": len(state.room_registry.connection_rooms),
        "active_rooms_with_members": len(state.room_registry.rooms),
        "store": "file" if state.store.path else "memory",
    }
