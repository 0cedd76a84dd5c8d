"""
WebSocket route: /ws. Accept, then feed frames to the gateway until the transport closes.

Authentication happens in-band with an {"type": "authenticate", "token": ...} event.
"""
import logging

from fastapi import WebSocket

from collegebuddy.core.websocket.handler import gateway
from collegebuddy.core.websocket.manager import Connection

logger = logging.getLogger(__name__)


async def websocket_endpoint(websocket: WebSocket) -> None:
    """Accept the socket and process its frames in order until disconnect."""
    await websocket.accept()
    connection = Connection(websocket)
    logger.info("WebSocket connection #%s opened", connection.seq)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = (message.get("bytes") or b"").decode("utf-8", errors="replace")
            await gateway.handle_frame(connection, raw)
    finally:
        await gateway.connection_closed(connection)
