"""
Message endpoints: the durable-write path and the fetch path used for reconciliation.

Every compose on a client goes out twice: once as a live sendMessage event and
once here. Both writes are stored; clients collapse the copies when merging.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from collegebuddy.core.memory.db import get_db
from collegebuddy.core.memory.models import User
from collegebuddy.core.memory.repository import MessageRepository, UserRepository
from collegebuddy.core.schemas import MessagePayload, message_to_dict, user_to_dict
from collegebuddy.core.security.permissions import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("")
def list_messages(
    other_user_id: Optional[str] = Query(default=None, alias="otherUserId"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[dict]:
    """
    Messages of the current user, oldest first, each with sender and receiver profiles.

    With otherUserId only the conversation with that user is returned.
    """
    messages = MessageRepository.list_for_user(db, user.id, other_user_id)
    profiles = {}
    result = []
    for message in messages:
        item = message_to_dict(message)
        for key, uid in (("sender", message.sender_id), ("receiver", message.receiver_id)):
            if uid not in profiles:
                found = UserRepository.get_by_id(db, uid)
                profiles[uid] = user_to_dict(found) if found else None
            item[key] = profiles[uid]
        result.append(item)
    return result


@router.post("", status_code=status.HTTP_201_CREATED)
def create_message(
    payload: MessagePayload,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Durable write. senderId is always the authenticated user; no dedup against live sends."""
    if not UserRepository.get_by_id(db, payload.receiver_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receiver not found")
    message = MessageRepository.create(
        db=db,
        sender_id=user.id,
        receiver_id=payload.receiver_id,
        content=payload.content,
        item_id=payload.item_id,
        note_id=payload.note_id,
    )
    logger.info("Durable write of message %s from user_id=%s", message.id, user.id)
    return message_to_dict(message)


@router.patch("/{message_id}/read")
def mark_message_read(
    message_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Mark a received message as read. Only the receiver may do this."""
    message = MessageRepository.get_by_id(db, message_id)
    if not message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if message.receiver_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    MessageRepository.mark_read(db, message_id)
    return {"success": True}
