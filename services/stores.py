"""Store persistence and the per-store rating aggregates computed on read."""

from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.db import transaction
from core.exceptions import ConflictError, NotFoundError
from models.rating import Rating
from models.store import Store
from security.policy import Principal, resolve_store_owner
from services.users import role_of

logger = structlog.get_logger(__name__)

STORE_EMAIL_TAKEN = "Store with this email already exists"

average_rating = func.round(func.coalesce(func.avg(Rating.score), 0), 2).label("average_rating")
total_ratings = func.count(Rating.id).label("total_ratings")


def _with_aggregates(store: Store, average, total) -> Dict[str, Any]:
    return {
        "id": store.id,
        "owner_id": store.owner_id,
        "name": store.name,
        "email": store.email,
        "address": store.address,
        # Postgres hands back Decimal, SQLite float
        "average_rating": round(float(average or 0), 2),
        "total_ratings": int(total or 0),
    }


def _aggregate_query():
    return (
        select(Store, average_rating, total_ratings)
        .outerjoin(Rating, Rating.store_id == Store.id)
        .group_by(Store.id)
    )


def list_stores(db: Session, owner_id: Optional[int] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
    stmt = _aggregate_query().order_by(Store.id)
    if owner_id is not None:
        stmt = stmt.where(Store.owner_id == owner_id)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Store.name.ilike(pattern), Store.address.ilike(pattern), Store.email.ilike(pattern)))
    return [_with_aggregates(store, avg, total) for store, avg, total in db.execute(stmt).all()]


def get_store(db: Session, store_id: int) -> Dict[str, Any]:
    row = db.execute(_aggregate_query().where(Store.id == store_id)).first()
    if not row:
        raise NotFoundError("Store not found")
    store, avg, total = row
    return _with_aggregates(store, avg, total)


def _email_taken(db: Session, email: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Store.id).where(Store.email == email)
    if exclude_id is not None:
        stmt = stmt.where(Store.id != exclude_id)
    return db.execute(stmt).first() is not None


def create_store(db: Session, principal: Principal, name: str, email: str, address: str, owner_id: Optional[int] = None) -> Dict[str, Any]:
    resolved_owner = resolve_store_owner(principal, owner_id, lambda uid: role_of(db, uid))
    email = email.lower()
    if _email_taken(db, email):
        raise ConflictError(STORE_EMAIL_TAKEN)

    store = Store(owner_id=resolved_owner, name=name, email=email, address=address)
    try:
        with transaction(db):
            db.add(store)
            db.flush()
    except IntegrityError:
        raise ConflictError(STORE_EMAIL_TAKEN)
    logger.info("Store created", store_id=store.id, owner_id=resolved_owner, created_by=principal.id)
    return _with_aggregates(store, 0, 0)


def update_store(db: Session, store_id: int, name: str, email: str, address: str) -> None:
    store = db.get(Store, store_id)
    if not store:
        raise NotFoundError("Store not found")
    email = email.lower()
    if _email_taken(db, email, exclude_id=store_id):
        raise ConflictError(STORE_EMAIL_TAKEN)
    try:
        with transaction(db):
            store.name = name
            store.email = email
            store.address = address
    except IntegrityError:
        raise ConflictError(STORE_EMAIL_TAKEN)
    logger.info("Store updated", store_id=store_id)


def delete_store(db: Session, store_id: int) -> None:
    store = db.get(Store, store_id)
    if not store:
        raise NotFoundError("Store not found")
    # Ratings go with the store (ON DELETE CASCADE)
    with transaction(db):
        db.delete(store)
    logger.info("Store deleted", store_id=store_id)
