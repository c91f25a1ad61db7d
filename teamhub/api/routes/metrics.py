# teamhub/api/routes/metrics.py
from datetime import datetime, timezone

from fastapi import APIRouter

from teamhub.core import state

router = APIRouter()

@router.get("/metrics")
async def get_metrics():
    """
    Usage metrics for the broker.

    Returns:
        dict: Message statistics (total sent since start, messages/sec,
        daily projection) and capacity (connections, authenticated
        connections, rooms by family)

    Example Response:
        {
            "total_messages": 1200,
            "uptime_hours": 5.5,
            "messages_per_second": 0.06,
            "concurrent_connections": 40,
            "rooms": {"audience": 6, "conversation": 3, "presence": 12}
        }
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()
    total_messages = state.chat_service.message_count

    if uptime_seconds > 0:
        messages_per_second = total_messages / uptime_seconds
        daily_messages = int(messages_per_second * 86400)
    else:
        messages_per_second = 0
        daily_messages = 0

    connections = list(state.room_registry.connection_rooms.keys())
    rooms_info = state.room_registry.get_rooms_info()

    families = {"audience": 0, "conversation": 0, "presence": 0}
    for room in rooms_info:
        if room.startswith("conversation:"):
            families["conversation"] += 1
        elif room.startswith("personal-chat:"):
            families["presence"] += 1
        else:
            families["audience"] += 1

    return {
        # Statistics
        "total_messages": total_messages,
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "daily_messages_projected": daily_messages,
        "messages_per_second": round(messages_per_second, 2),

        # Capacity
        "concurrent_connections": len(connections),
        "authenticated_connections": sum(1 for c in connections if c.state.registered),
        "active_rooms_with_members": len(rooms_info),
        "rooms": families,
    }
