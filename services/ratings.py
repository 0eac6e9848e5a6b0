"""
Rating submission, aggregation and the owner response workflow.

A user has at most one rating per store. Submitting again updates the score of
the existing row; the unique constraint on (user_id, store_id) is the backstop
when two submissions race.
"""

from datetime import datetime
from typing import Any, Dict, List, Tuple

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.db import transaction
from core.exceptions import ConflictError, NotFoundError, NotFoundOrUnauthorized
from models.rating import Rating
from models.store import Store
from models.user import User
from security.policy import Action, Principal, is_allowed

logger = structlog.get_logger(__name__)


def _upsert(db: Session, user_id: int, store_id: int, score: int) -> Tuple[Rating, bool]:
    with transaction(db):
        if db.get(Store, store_id) is None:
            raise NotFoundError("Store not found")

        rating = db.execute(
            select(Rating)
            .where(Rating.user_id == user_id, Rating.store_id == store_id)
            .with_for_update()
        ).scalar_one_or_none()

        if rating is not None:
            rating.score = score
            created = False
        else:
            rating = Rating(user_id=user_id, store_id=store_id, score=score)
            db.add(rating)
            created = True
        db.flush()
    return rating, created


def create_or_update_rating(db: Session, user_id: int, store_id: int, score: int) -> Tuple[Rating, bool]:
    """Insert the caller's rating for a store, or update its score if one exists.

    Returns the rating and whether it was newly created. The whole sequence is
    one transaction; if a concurrent submission inserted the row first, the
    unique constraint rejects ours and the submission is replayed as an update.
    """
    try:
        rating, created = _upsert(db, user_id, store_id, score)
    except IntegrityError:
        logger.info("Rating insert lost race, retrying as update", user_id=user_id, store_id=store_id)
        try:
            rating, created = _upsert(db, user_id, store_id, score)
        except IntegrityError:
            raise ConflictError("Rating was modified concurrently, please retry")

    logger.info(
        "Rating created" if created else "Rating updated",
        rating_id=rating.id,
        user_id=user_id,
        store_id=store_id,
        score=score,
    )
    return rating, created


def rating_summary(db: Session, store_id: int) -> Dict[str, Any]:
    if db.get(Store, store_id) is None:
        raise NotFoundError("Store not found")
    average, total, lowest, highest = db.execute(
        select(
            func.round(func.coalesce(func.avg(Rating.score), 0), 2),
            func.count(Rating.id),
            func.min(Rating.score),
            func.max(Rating.score),
        ).where(Rating.store_id == store_id)
    ).one()
    return {
        "average": round(float(average or 0), 2),
        "total_ratings": int(total or 0),
        "lowest_rating": lowest,
        "highest_rating": highest,
    }


def _rating_row(rating: Rating, user_name: str) -> Dict[str, Any]:
    return {
        "id": rating.id,
        "user_id": rating.user_id,
        "store_id": rating.store_id,
        "score": rating.score,
        "user_name": user_name,
        "owner_response": rating.owner_response,
        "owner_response_date": rating.owner_response_date,
        "created_at": rating.created_at,
        "updated_at": rating.updated_at,
    }


def list_store_ratings(db: Session, store_id: int) -> List[Dict[str, Any]]:
    if db.get(Store, store_id) is None:
        raise NotFoundError("Store not found")
    rows = db.execute(
        select(Rating, User.name)
        .join(User, Rating.user_id == User.id)
        .where(Rating.store_id == store_id)
        .order_by(Rating.created_at.desc(), Rating.id.desc())
    ).all()
    return [_rating_row(rating, user_name) for rating, user_name in rows]


def _owner_rating_query():
    return (
        select(Rating, User.name, Store.name, Store.address)
        .join(User, Rating.user_id == User.id)
        .join(Store, Rating.store_id == Store.id)
    )


def _owner_rating_row(row) -> Dict[str, Any]:
    rating, user_name, store_name, store_address = row
    data = _rating_row(rating, user_name)
    data.update(store_name=store_name, store_address=store_address)
    return data


def list_owner_ratings(db: Session, owner_id: int) -> List[Dict[str, Any]]:
    rows = db.execute(
        _owner_rating_query()
        .where(Store.owner_id == owner_id)
        .order_by(Rating.created_at.desc(), Rating.id.desc())
    ).all()
    return [_owner_rating_row(row) for row in rows]


def respond_to_rating(db: Session, principal: Principal, rating_id: int, response: str) -> Dict[str, Any]:
    """Attach (or overwrite) the store owner's response to a rating.

    A rating that does not exist and one on somebody else's store are reported
    the same way.
    """
    with transaction(db):
        row = db.execute(
            select(Rating, Store.owner_id)
            .join(Store, Rating.store_id == Store.id)
            .where(Rating.id == rating_id)
            .with_for_update()
        ).first()
        if row is None or not is_allowed(principal, Action.RESPOND_TO_RATING, owner_id=row.owner_id):
            raise NotFoundOrUnauthorized()
        rating = row.Rating

        rating.owner_response = response
        rating.owner_response_date = datetime.utcnow()

    logger.info("Owner responded to rating", rating_id=rating_id, owner_id=principal.id)
    row = db.execute(_owner_rating_query().where(Rating.id == rating_id)).one()
    return _owner_rating_row(row)
