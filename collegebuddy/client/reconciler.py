"""
Timeline reconciliation for a two-user conversation.

A client sees each message from up to two sources: events pushed on the live
channel since it connected, and the list fetched from GET /api/messages. Since
every compose is written twice (live + durable), the store can also hold two
records for one message. merge_timeline() folds all of that into one ordered
timeline.

Two entries count as the same message when their content is equal and their
timestamps are less than window_ms apart. This is a heuristic: identical
texts sent within the window collapse into one, and copies further apart than
the window (clock skew between the two write paths) both survive.
"""
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

DEFAULT_WINDOW_MS = 1000

_EPOCH = datetime(1970, 1, 1)

_FIELD_ALIASES = {
    "senderId": ("senderId", "sender_id"),
    "receiverId": ("receiverId", "receiver_id"),
    "createdAt": ("createdAt", "created_at"),
    "content": ("content",),
}


def _field(message: Any, name: str) -> Any:
    """Read a field from a camelCase/snake_case dict or an object with attributes."""
    for key in _FIELD_ALIASES[name]:
        if isinstance(message, dict):
            if key in message:
                return message[key]
        elif hasattr(message, key):
            return getattr(message, key)
    return None


def parse_timestamp(value: Any) -> datetime:
    """ISO string or datetime -> naive UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _millis(message: Any) -> float:
    return (parse_timestamp(_field(message, "createdAt")) - _EPOCH).total_seconds() * 1000.0


def is_same_message(a: Any, b: Any, window_ms: float = DEFAULT_WINDOW_MS) -> bool:
    """Equal content and timestamps strictly less than window_ms apart."""
    if _field(a, "content") != _field(b, "content"):
        return False
    return abs(_millis(a) - _millis(b)) < window_ms


def conversation_filter(messages: Iterable[Any], user_id: str, other_user_id: str) -> List[Any]:
    """Keep only messages between user_id and other_user_id, either direction."""
    pair = {(user_id, other_user_id), (other_user_id, user_id)}
    return [
        m for m in messages
        if (_field(m, "senderId"), _field(m, "receiverId")) in pair
    ]


def merge_timeline(
    fetched: Iterable[Any],
    live: Iterable[Any],
    user_id: str,
    other_user_id: str,
    window_ms: Optional[float] = None,
) -> List[Any]:
    """
    Merge fetched and live messages into one ascending, duplicate-free list.

    Entries are filtered to the pair, sorted by creation time (stable), and an
    entry is dropped when any earlier entry in that order is the same message.
    """
    window = DEFAULT_WINDOW_MS if window_ms is None else window_ms
    combined = conversation_filter(list(fetched) + list(live), user_id, other_user_id)
    keyed = sorted(((_millis(m), m) for m in combined), key=lambda pair: pair[0])

    timeline: List[Any] = []
    for i, (ts, message) in enumerate(keyed):
        content = _field(message, "content")
        duplicate = False
        j = i - 1
        # sorted ascending, so only the tail within the window can match
        while j >= 0 and ts - keyed[j][0] < window:
            if _field(keyed[j][1], "content") == content:
                duplicate = True
                break
            j -= 1
        if not duplicate:
            timeline.append(message)
    return timeline
