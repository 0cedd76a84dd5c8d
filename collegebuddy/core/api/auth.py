"""
Account endpoints: register, login, current user.

Issued tokens authenticate both REST calls and the live channel.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from collegebuddy.core.memory.db import get_db
from collegebuddy.core.memory.models import User
from collegebuddy.core.memory.repository import UserRepository
from collegebuddy.core.schemas import user_to_dict
from collegebuddy.core.security.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password
from collegebuddy.core.security.permissions import get_current_user
from collegebuddy.core.security.tokens import TokenManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    """New account."""
    username: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    name: str = Field(min_length=1, max_length=255)
    branch: Optional[str] = None
    year: Optional[int] = None
    avatar: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


def _auth_response(user: User) -> dict:
    token = TokenManager.create_access_token({"user_id": user.id})
    return {"user": user_to_dict(user), "token": token}


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)) -> dict:
    """Create an account and return it together with an access token."""
    if UserRepository.get_by_email(db, request.email) or UserRepository.get_by_username(db, request.username):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")
    try:
        user = UserRepository.create(
            db=db,
            username=request.username,
            email=request.email,
            password_hash=hash_password(request.password),
            name=request.name,
            branch=request.branch,
            year=request.year,
            avatar=request.avatar,
        )
    except IntegrityError:
        # lost a race with a concurrent registration
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")
    logger.info("Registered user_id=%s (%s)", user.id, user.username)
    return _auth_response(user)


@router.post("/login")
def login(request: LoginRequest, db: Session = Depends(get_db)) -> dict:
    """Exchange email and password for an access token."""
    user = UserRepository.get_by_email(db, request.email)
    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    UserRepository.update_last_seen(db, user.id)
    return _auth_response(user)


@router.get("/me")
def me(user: User = Depends(get_current_user)) -> dict:
    """Current user's profile."""
    return {"user": user_to_dict(user)}
