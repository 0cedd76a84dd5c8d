"""
Health check endpoint.
"""
from datetime import datetime, timezone

from fastapi import APIRouter

from collegebuddy.core.websocket.manager import connection_registry

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health():
    """Service status plus the number of users currently reachable live."""
    return {
        "status": "ok",
        "service": "collegebuddy-core",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "live_connections": len(await connection_registry.get_connected_user_ids()),
    }
