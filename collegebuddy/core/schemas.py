"""
Wire models shared by the REST routers, the live gateway and the message store.

JSON keys are camelCase on the wire (senderId, createdAt, ...); input accepts
either camelCase or snake_case.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from collegebuddy.core.config import settings


def format_timestamp(value: datetime) -> str:
    """Naive UTC datetime -> ISO-8601 with milliseconds and Z suffix."""
    return value.isoformat(timespec="milliseconds") + "Z"


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessagePayload(WireModel):
    """Compose payload, identical for the live sendMessage event and POST /api/messages."""
    sender_id: Optional[str] = None
    receiver_id: str
    content: str
    item_id: Optional[str] = None
    note_id: Optional[str] = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("content must not be empty")
        if len(v) > settings.message_max_length:
            raise ValueError(f"content longer than {settings.message_max_length} characters")
        return v

    @field_validator("receiver_id")
    @classmethod
    def validate_receiver(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("receiverId is required")
        return v


class MessageOut(WireModel):
    """Persisted message as sent to clients."""
    id: str
    sender_id: str
    receiver_id: str
    content: str
    item_id: Optional[str] = None
    note_id: Optional[str] = None
    read: bool = False
    created_at: datetime

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        return format_timestamp(value)


class UserPublic(WireModel):
    """User profile without credentials."""
    id: str
    username: str
    name: str
    branch: Optional[str] = None
    year: Optional[int] = None
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_serializer("created_at")
    def serialize_created_at(self, value: Optional[datetime]) -> Optional[str]:
        return format_timestamp(value) if value else None


def message_to_dict(message) -> dict:
    """ORM Message -> camelCase JSON-ready dict."""
    return MessageOut.model_validate(message).model_dump(mode="json", by_alias=True)


def user_to_dict(user) -> dict:
    """ORM User -> camelCase JSON-ready dict (no password hash)."""
    return UserPublic.model_validate(user).model_dump(mode="json", by_alias=True)
