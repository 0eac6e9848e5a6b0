from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.db import get_db
from models.user import User
from routes.auth import require
from schemas.rating import OwnerRatingOut, RatingResponseRequest
from security.policy import Action, Principal
from services import ratings as rating_service

router = APIRouter(prefix="/owners", tags=["owners"])


@router.get("/ratings", response_model=List[OwnerRatingOut])
def owner_ratings(
    current_user: User = Depends(require(Action.LIST_OWNER_RATINGS)),
    db: Session = Depends(get_db),
):
    return rating_service.list_owner_ratings(db, current_user.id)


@router.post("/ratings/{rating_id}/respond", response_model=OwnerRatingOut)
def respond_to_rating(
    rating_id: int,
    data: RatingResponseRequest,
    current_user: User = Depends(require(Action.RESPOND_TO_RATING)),
    db: Session = Depends(get_db),
):
    return rating_service.respond_to_rating(db, Principal.from_user(current_user), rating_id, data.response)
