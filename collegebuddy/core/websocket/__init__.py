"""
WebSocket layer for live direct messages.

One registered connection per user; the newest authenticated connection wins.
"""

from collegebuddy.core.websocket.manager import connection_registry
from collegebuddy.core.websocket.handler import gateway

__all__ = ["connection_registry", "gateway"]
