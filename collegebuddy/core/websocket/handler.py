"""
Messaging gateway: per-connection protocol state machine and routing between connections.

States: unauthenticated -> authenticated -> closed. Store calls are blocking
(SQLAlchemy) and run in the default executor so one connection never stalls
the event loop for the others.
"""
import asyncio
import functools
import logging
from typing import Any, Callable, Dict, Optional, Set

from pydantic import ValidationError

from collegebuddy.core.config import settings
from collegebuddy.core.memory.store import MessageStore, message_store
from collegebuddy.core.schemas import MessagePayload
from collegebuddy.core.security.tokens import TokenManager
from collegebuddy.core.websocket import protocol
from collegebuddy.core.websocket.manager import Connection, ConnectionRegistry, connection_registry

logger = logging.getLogger(__name__)


class MessagingGateway:
    """Routes live events between connections registered in a ConnectionRegistry."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        store: MessageStore,
        resolve_token: Callable[[str], Optional[str]] = TokenManager.user_id_from_token,
        max_frame_size: Optional[int] = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.resolve_token = resolve_token
        self.max_frame_size = max_frame_size or settings.ws_max_frame_size
        self._deliveries: Set[asyncio.Task] = set()

    async def _run_blocking(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args))

    async def handle_frame(self, connection: Connection, raw: str) -> None:
        """Entry point for one inbound text frame."""
        if connection.closed:
            return
        try:
            event = protocol.parse_frame(raw, self.max_frame_size)
        except protocol.ProtocolError as e:
            logger.debug("Connection #%s sent bad frame: %s", connection.seq, e.message)
            await connection.send_event(protocol.error_event(e.message))
            return
        await self.handle_event(connection, event)

    async def handle_event(self, connection: Connection, event: Dict[str, Any]) -> None:
        """Dispatch a decoded event by type."""
        kind = event.get("type")
        if kind == protocol.AUTHENTICATE:
            await self._authenticate(connection, event)
        elif kind == protocol.SEND_MESSAGE:
            await self._send_message(connection, event)
        else:
            await connection.send_event(protocol.error_event(protocol.ERR_UNKNOWN_TYPE))

    async def _authenticate(self, connection: Connection, event: Dict[str, Any]) -> None:
        token = event.get("token")
        user_id = self.resolve_token(token) if isinstance(token, str) else None
        user = await self._run_blocking(self.store.get_user, user_id) if user_id else None
        if user is None:
            logger.info("Authentication failed on connection #%s", connection.seq)
            await connection.send_event(protocol.error_event(protocol.ERR_AUTH_FAILED))
            return
        if connection.closed:
            return

        if connection.user_id is not None and connection.user_id != user_id:
            # Re-authenticated as someone else: drop the old identity's entry
            await self.registry.unregister(connection)
        connection.user_id = user_id
        await self.registry.register(user_id, connection)
        logger.info("Connection #%s authenticated as user_id=%s", connection.seq, user_id)
        await connection.send_event(protocol.auth_ack(user_id, settings.dedup_window_ms))

    async def _send_message(self, connection: Connection, event: Dict[str, Any]) -> None:
        if not connection.is_authenticated:
            await connection.send_event(protocol.error_event(protocol.ERR_NOT_AUTHENTICATED))
            return

        data = event.get("data")
        if not isinstance(data, dict):
            await connection.send_event(protocol.error_event(protocol.ERR_INVALID_PAYLOAD))
            return
        try:
            payload = MessagePayload.model_validate(data)
        except ValidationError as e:
            logger.debug("Connection #%s invalid sendMessage: %s", connection.seq, e)
            await connection.send_event(protocol.error_event(protocol.ERR_INVALID_PAYLOAD))
            return
        if payload.sender_id is not None and payload.sender_id != connection.user_id:
            await connection.send_event(protocol.error_event(protocol.ERR_SENDER_MISMATCH))
            return
        payload.sender_id = connection.user_id

        receiver = await self._run_blocking(self.store.get_user, payload.receiver_id)
        if receiver is None:
            logger.debug("Connection #%s sent to unknown user_id=%s", connection.seq, payload.receiver_id)
            await connection.send_event(protocol.error_event(protocol.ERR_UNKNOWN_RECEIVER))
            return

        # Persist before any delivery attempt
        try:
            message = await self._run_blocking(self.store.create_message, payload)
        except Exception:
            logger.exception(
                "Persisting live message from user_id=%s to user_id=%s failed",
                payload.sender_id, payload.receiver_id,
            )
            await connection.send_event(protocol.error_event(protocol.ERR_SEND_FAILED))
            return

        self._deliver(payload.receiver_id, protocol.new_message_event(message))
        await connection.send_event(protocol.message_sent_event(message))

    def _deliver(self, user_id: str, event: Dict[str, Any]) -> None:
        """Fire-and-forget push; the sender never waits on the receiver's socket."""
        task = asyncio.create_task(self.registry.send_to_user(user_id, event))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def drain(self) -> None:
        """Wait for in-flight pushes (shutdown and tests)."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def connection_closed(self, connection: Connection) -> None:
        """Transport closed: stop processing and drop the registry entry (if still ours)."""
        connection.mark_closed()
        await self.registry.unregister(connection)
        logger.info("Connection #%s closed (user_id=%s)", connection.seq, connection.user_id)


gateway = MessagingGateway(connection_registry, message_store)
