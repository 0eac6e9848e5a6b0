from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.db import get_db
from models.user import Role, User
from routes.auth import require
from schemas.store import AdminStoreCreate, AdminStoreCreated, StoreOut
from schemas.users import UserOut
from security.policy import Action, Principal
from services import stores as store_service
from services import users as user_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/stores", response_model=AdminStoreCreated, status_code=status.HTTP_201_CREATED)
def create_store(
    data: AdminStoreCreate,
    current_user: User = Depends(require(Action.ADMIN_CREATE_STORE)),
    db: Session = Depends(get_db),
):
    store = store_service.create_store(
        db,
        Principal.from_user(current_user),
        name=data.name,
        email=data.email,
        address=data.address,
        owner_id=data.owner_id,
    )
    return AdminStoreCreated(message="Store created successfully", store=StoreOut(**store))


@router.get("/users", response_model=List[UserOut])
def list_users(
    role: Optional[Role] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
    _: User = Depends(require(Action.LIST_USERS)),
    db: Session = Depends(get_db),
):
    return user_service.list_users(db, role=role, search=search)


@router.get("/stores", response_model=List[StoreOut])
def list_stores(
    search: Optional[str] = Query(default=None, max_length=100),
    _: User = Depends(require(Action.ADMIN_LIST_STORES)),
    db: Session = Depends(get_db),
):
    return store_service.list_stores(db, search=search)
