from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.db import get_db
from models.user import User
from routes.auth import require
from schemas.rating import RatingOut, RatingSubmit, RatingSummary, StoreRatingOut
from security.policy import Action
from services import ratings as rating_service

router = APIRouter(prefix="/ratings", tags=["ratings"])


# POST and PUT share the create-or-update path
@router.post("", response_model=RatingOut, status_code=status.HTTP_201_CREATED)
@router.put("", response_model=RatingOut, status_code=status.HTTP_201_CREATED)
def submit_rating(
    data: RatingSubmit,
    current_user: User = Depends(require(Action.SUBMIT_RATING)),
    db: Session = Depends(get_db),
):
    rating, created = rating_service.create_or_update_rating(db, current_user.id, data.store_id, data.score)
    return RatingOut(id=rating.id, user_id=rating.user_id, store_id=rating.store_id, score=rating.score, created=created)


@router.get("/{store_id}", response_model=List[StoreRatingOut])
def store_ratings(
    store_id: int,
    _: User = Depends(require(Action.VIEW_STORE_RATINGS)),
    db: Session = Depends(get_db),
):
    return rating_service.list_store_ratings(db, store_id)


@router.get("/{store_id}/average", response_model=RatingSummary)
def store_average(store_id: int, db: Session = Depends(get_db)):
    return rating_service.rating_summary(db, store_id)
