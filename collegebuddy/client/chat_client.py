"""
Async chat client for the College Buddy messaging API.

- Live channel over WebSocket (/ws): authenticate, then receive newMessage /
  messageSent events into a local buffer.
- Request/response over HTTP: durable write (POST /api/messages), fetch
  (GET /api/messages) and mark-as-read.

compose() uses both paths for every message; timeline() merges the fetched
list with the live buffer through the reconciler.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import httpx
import websockets

from collegebuddy.client.reconciler import DEFAULT_WINDOW_MS, merge_timeline

logger = logging.getLogger(__name__)


class ChatClientError(Exception):
    """Raised when the live handshake or an HTTP call fails."""


def _ws_url(base_url: str) -> str:
    if base_url.startswith("https://"):
        return "wss://" + base_url[len("https://"):] + "/ws"
    if base_url.startswith("http://"):
        return "ws://" + base_url[len("http://"):] + "/ws"
    return base_url + "/ws"


class ChatClient:
    """One user's view of the messaging service."""

    def __init__(
        self,
        base_url: str,
        token: str,
        user_id: Optional[str] = None,
        dedup_window_ms: Optional[float] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.ws_url = _ws_url(self.base_url)
        self.token = token
        self.user_id = user_id
        # None: take the window the server announces on authentication
        self._window_from_server = dedup_window_ms is None
        self.dedup_window_ms = DEFAULT_WINDOW_MS if dedup_window_ms is None else dedup_window_ms
        self.live_messages: List[Dict[str, Any]] = []
        self.last_error: Optional[str] = None
        self._http = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._ws = None
        self._listener: Optional[asyncio.Task] = None
        self._connected = False

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    # Live channel

    async def connect(self, timeout: float = 10.0) -> str:
        """Open the live channel and authenticate. Returns the authenticated user id."""
        try:
            self._ws = await websockets.connect(self.ws_url)
            await self._ws.send(json.dumps({"type": "authenticate", "token": self.token}))
            while True:
                raw = await asyncio.wait_for(self._ws.recv(), timeout=timeout)
                event = json.loads(raw)
                if event.get("type") == "authenticated":
                    break
                if event.get("type") == "error":
                    raise ChatClientError(event.get("message") or "Authentication failed")
        except ChatClientError:
            await self._close_ws()
            raise
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException, json.JSONDecodeError) as e:
            await self._close_ws()
            raise ChatClientError(f"Live channel handshake failed: {e}") from e

        self.user_id = event.get("userId") or self.user_id
        if self._window_from_server and isinstance(event.get("dedupWindowMs"), (int, float)):
            self.dedup_window_ms = event["dedupWindowMs"]
        self._connected = True
        self._listener = asyncio.create_task(self._listen())
        logger.info("Live channel open for user_id=%s", self.user_id)
        return self.user_id

    async def _listen(self) -> None:
        """Read events until the socket closes."""
        try:
            async for raw in self._ws:
                try:
                    event = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning("Ignoring non-JSON frame from server")
                    continue
                self.handle_event(event)
        except websockets.ConnectionClosed:
            pass
        finally:
            self._connected = False
            logger.info("Live channel closed for user_id=%s", self.user_id)

    def handle_event(self, event: Dict[str, Any]) -> None:
        """Apply one server event to local state."""
        kind = event.get("type")
        if kind in ("newMessage", "messageSent"):
            data = event.get("data")
            if isinstance(data, dict):
                self.live_messages.append(data)
        elif kind == "error":
            self.last_error = event.get("message")
            logger.warning("Server reported error: %s", self.last_error)

    async def send_live(self, data: Dict[str, Any]) -> bool:
        """Best-effort sendMessage on the live channel. False when not connected."""
        if not self._connected or self._ws is None:
            return False
        try:
            await self._ws.send(json.dumps({"type": "sendMessage", "data": data}))
            return True
        except websockets.ConnectionClosed:
            self._connected = False
            return False

    # Request/response

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._http.request(method, path, headers=self._headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = ""
            try:
                detail = e.response.json().get("detail", "")
            except ValueError:
                detail = e.response.text
            raise ChatClientError(f"{method} {path} failed ({e.response.status_code}): {detail}") from e
        except httpx.RequestError as e:
            raise ChatClientError(f"{method} {path} failed: {e}") from e
        return response.json()

    async def post_message(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Durable write; returns the stored message."""
        return await self._request("POST", "/api/messages", json=data)

    async def fetch(self, other_user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Stored messages, oldest first; only the conversation with other_user_id if given."""
        params = {"otherUserId": other_user_id} if other_user_id else None
        return await self._request("GET", "/api/messages", params=params)

    async def mark_read(self, message_id: str) -> None:
        await self._request("PATCH", f"/api/messages/{message_id}/read")

    # Both paths

    async def compose(
        self,
        receiver_id: str,
        content: str,
        item_id: Optional[str] = None,
        note_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send one message over both paths: live (if connected) for immediacy,
        then the durable write, which is the one that must succeed.
        """
        data: Dict[str, Any] = {"receiverId": receiver_id, "content": content}
        if self.user_id:
            data["senderId"] = self.user_id
        if item_id:
            data["itemId"] = item_id
        if note_id:
            data["noteId"] = note_id

        if not await self.send_live(data):
            logger.debug("Live channel unavailable; durable write only")
        return await self.post_message(data)

    async def timeline(self, other_user_id: str) -> List[Dict[str, Any]]:
        """Fetched conversation merged with live events, ordered and de-duplicated."""
        if not self.user_id:
            raise ChatClientError("user_id unknown; connect() first or pass user_id")
        fetched = await self.fetch(other_user_id)
        return merge_timeline(
            fetched,
            self.live_messages,
            self.user_id,
            other_user_id,
            window_ms=self.dedup_window_ms,
        )

    async def _close_ws(self) -> None:
        if self._ws is not None:
            try:
                await self._ws.close()
            except websockets.WebSocketException as e:
                logger.debug("Closing live channel: %s", e)
            self._ws = None
        self._connected = False

    async def close(self) -> None:
        """Close the live channel and the HTTP client."""
        await self._close_ws()
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self._http.aclose()
