from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.db import get_db
from models.user import User
from routes.auth import require
from schemas.profile import MessageResponse
from schemas.rating import RatingOut, RatingScore
from schemas.store import StoreCreate, StoreOut, StoreUpdate
from security.policy import Action, Principal
from services import ratings as rating_service
from services import stores as store_service

router = APIRouter(prefix="/stores", tags=["stores"])


@router.get("", response_model=List[StoreOut])
def list_stores(
    owner_id: Optional[int] = Query(default=None, alias="ownerId", ge=1),
    search: Optional[str] = Query(default=None, max_length=100),
    db: Session = Depends(get_db),
):
    return store_service.list_stores(db, owner_id=owner_id, search=search)


@router.post("", response_model=StoreOut, status_code=status.HTTP_201_CREATED)
def create_store(
    data: StoreCreate,
    current_user: User = Depends(require(Action.CREATE_STORE)),
    db: Session = Depends(get_db),
):
    return store_service.create_store(
        db,
        Principal.from_user(current_user),
        name=data.name,
        email=data.email,
        address=data.address,
        owner_id=data.owner_id,
    )


@router.get("/{store_id}", response_model=StoreOut)
def get_store(store_id: int, db: Session = Depends(get_db)):
    return store_service.get_store(db, store_id)


@router.put("/{store_id}", response_model=MessageResponse)
def update_store(
    store_id: int,
    data: StoreUpdate,
    _: User = Depends(require(Action.UPDATE_STORE)),
    db: Session = Depends(get_db),
):
    store_service.update_store(db, store_id, name=data.name, email=data.email, address=data.address)
    return MessageResponse(message="Store updated successfully")


@router.delete("/{store_id}", response_model=MessageResponse)
def delete_store(
    store_id: int,
    _: User = Depends(require(Action.DELETE_STORE)),
    db: Session = Depends(get_db),
):
    store_service.delete_store(db, store_id)
    return MessageResponse(message="Store deleted successfully")


@router.post("/{store_id}/rate", response_model=RatingOut, status_code=status.HTTP_201_CREATED)
def rate_store(
    store_id: int,
    data: RatingScore,
    current_user: User = Depends(require(Action.SUBMIT_RATING)),
    db: Session = Depends(get_db),
):
    rating, created = rating_service.create_or_update_rating(db, current_user.id, store_id, data.score)
    return RatingOut(id=rating.id, user_id=rating.user_id, store_id=rating.store_id, score=rating.score, created=created)
