"""
Live channel envelopes: JSON text frames of the form {"type": ..., ...}.
"""
import json
from typing import Any, Dict

# Client -> server
AUTHENTICATE = "authenticate"
SEND_MESSAGE = "sendMessage"

# Server -> client
AUTHENTICATED = "authenticated"
NEW_MESSAGE = "newMessage"
MESSAGE_SENT = "messageSent"
ERROR = "error"

# Error texts sent back on the same connection
ERR_INVALID_FORMAT = "Invalid message format"
ERR_FRAME_TOO_LARGE = "Frame too large"
ERR_UNKNOWN_TYPE = "Unknown event type"
ERR_AUTH_FAILED = "Authentication failed"
ERR_NOT_AUTHENTICATED = "Not authenticated"
ERR_INVALID_PAYLOAD = "Invalid message payload"
ERR_SENDER_MISMATCH = "senderId does not match authenticated user"
ERR_UNKNOWN_RECEIVER = "Receiver not found"
ERR_SEND_FAILED = "Failed to send message"


class ProtocolError(Exception):
    """Recoverable protocol error; reported to the connection, never closes it."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def parse_frame(raw: str, max_size: int) -> Dict[str, Any]:
    """Decode one text frame into an event dict with a string type. max_size is in bytes."""
    if len(raw.encode("utf-8")) > max_size:
        raise ProtocolError(ERR_FRAME_TOO_LARGE)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        raise ProtocolError(ERR_INVALID_FORMAT)
    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise ProtocolError(ERR_INVALID_FORMAT)
    return data


def auth_ack(user_id: str, dedup_window_ms: int) -> Dict[str, Any]:
    """Handshake reply; carries the tolerance clients should merge timelines with."""
    return {"type": AUTHENTICATED, "userId": user_id, "dedupWindowMs": dedup_window_ms}


def error_event(message: str) -> Dict[str, Any]:
    return {"type": ERROR, "message": message}


def new_message_event(message: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": NEW_MESSAGE, "data": message}


def message_sent_event(message: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": MESSAGE_SENT, "data": message}
