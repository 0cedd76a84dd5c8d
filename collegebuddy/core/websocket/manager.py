"""
Connection registry: map user_id to the single live connection reachable for delivery.
"""
import asyncio
import itertools
import logging
from typing import Any, Dict, List, Optional

from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

_connection_seq = itertools.count(1)


class Connection:
    """
    One live transport session.

    user_id is None until the connection authenticates. Sends are serialized
    through a per-connection lock because pushes from other connections'
    handlers can race with this connection's own replies.
    """

    def __init__(self, websocket: Any) -> None:
        self.websocket = websocket
        self.seq = next(_connection_seq)
        self.user_id: Optional[str] = None
        self.closed = False
        self._send_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<Connection #{self.seq} user_id={self.user_id} closed={self.closed}>"

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_open(self) -> bool:
        """True while neither side has closed the transport."""
        if self.closed:
            return False
        for attr in ("application_state", "client_state"):
            state = getattr(self.websocket, attr, WebSocketState.CONNECTED)
            if state != WebSocketState.CONNECTED:
                return False
        return True

    def mark_closed(self) -> None:
        self.closed = True

    async def send_event(self, event: Dict[str, Any]) -> bool:
        """Send one JSON event. Returns False (never raises) if the transport is gone."""
        if not self.is_open:
            return False
        async with self._send_lock:
            if not self.is_open:
                return False
            try:
                await self.websocket.send_json(event)
                return True
            except Exception as e:
                logger.debug("Send on connection #%s failed: %s", self.seq, e)
                self.closed = True
                return False


class ConnectionRegistry:
    """
    Maps user_id to at most one Connection.

    The last registered connection for a user wins. Removal goes by connection
    identity, so a stale connection closing late never evicts its replacement.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}  # user_id -> Connection
        self._lock = asyncio.Lock()

    async def register(self, user_id: str, connection: Connection) -> Optional[Connection]:
        """Insert or replace the entry for user_id. Returns the replaced connection, if any."""
        async with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = connection
        if previous is not None and previous is not connection:
            logger.info(
                "Connection #%s replaces #%s for user_id=%s",
                connection.seq, previous.seq, user_id,
            )
            return previous
        logger.info("Connection #%s registered for user_id=%s", connection.seq, user_id)
        return None

    async def lookup(self, user_id: str) -> Optional[Connection]:
        """Current connection for user_id, or None if the user is not reachable live."""
        async with self._lock:
            return self._connections.get(user_id)

    async def unregister(self, connection: Connection) -> Optional[str]:
        """
        Remove the entry whose value is this exact connection object.

        Returns the user_id that was removed, or None when the connection was
        never registered or has already been superseded.
        """
        async with self._lock:
            for user_id, registered in self._connections.items():
                if registered is connection:
                    del self._connections[user_id]
                    break
            else:
                return None
        logger.info("Connection #%s unregistered for user_id=%s", connection.seq, user_id)
        return user_id

    def is_connected(self, user_id: str) -> bool:
        """Return True if user has a registered connection."""
        return user_id in self._connections

    async def get_connected_user_ids(self) -> List[str]:
        """Return user_ids that currently have a registered connection."""
        async with self._lock:
            return list(self._connections.keys())

    async def send_to_user(self, user_id: str, event: Dict[str, Any]) -> bool:
        """
        Best-effort push to user_id. Absent and closed connections are the same
        no-op outcome (False), never an error.
        """
        connection = await self.lookup(user_id)
        if connection is None or not connection.is_open:
            logger.debug("No live connection for user_id=%s; %s not pushed", user_id, event.get("type"))
            return False
        return await connection.send_event(event)


connection_registry = ConnectionRegistry()
