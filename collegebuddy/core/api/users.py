"""
Public user profiles.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from collegebuddy.core.memory.db import get_db
from collegebuddy.core.memory.repository import UserRepository
from collegebuddy.core.schemas import user_to_dict

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/{user_id}")
def get_user(user_id: str, db: Session = Depends(get_db)) -> dict:
    user = UserRepository.get_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user_to_dict(user)
