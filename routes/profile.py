from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.db import get_db
from models.user import Role, User
from routes.auth import require
from schemas.auth import ChangePasswordRequest
from schemas.profile import MessageResponse, ProfileUpdate
from schemas.users import UserOut
from security.policy import Action
from services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile", response_model=UserOut)
def get_profile(current_user: User = Depends(require(Action.VIEW_PROFILE))):
    """Get current user's profile"""
    return current_user


@router.put("/profile", response_model=MessageResponse)
def update_profile(
    profile_data: ProfileUpdate,
    current_user: User = Depends(require(Action.UPDATE_PROFILE)),
    db: Session = Depends(get_db),
):
    """Update current user's name and address"""
    user_service.update_profile(db, current_user, profile_data)
    return MessageResponse(message="Profile updated successfully")


# Both paths and both verbs are accepted for older clients
@router.put("/password", response_model=MessageResponse)
@router.post("/password", response_model=MessageResponse)
@router.put("/update-password", response_model=MessageResponse)
@router.post("/update-password", response_model=MessageResponse)
def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(require(Action.CHANGE_PASSWORD)),
    db: Session = Depends(get_db),
):
    user_service.change_password(db, current_user, data)
    return MessageResponse(message="Password updated successfully")


@router.get("", response_model=List[UserOut])
def list_users(
    role: Optional[Role] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
    _: User = Depends(require(Action.LIST_USERS)),
    db: Session = Depends(get_db),
):
    return user_service.list_users(db, role=role, search=search)
