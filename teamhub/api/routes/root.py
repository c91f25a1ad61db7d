# teamhub/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the API and its features.
    """
    return {
        "message": "TeamHub real-time messaging",
        "version": "1.0",
        "architecture": "single process, in-memory rooms, persist then broadcast",
        "features": ["group_chat", "personal_chat", "reactions", "file_messages", "notifications"],
        "endpoints": {
            "websocket": "/ws",
            "rooms": "/rooms",
            "notifications": "/notifications",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
