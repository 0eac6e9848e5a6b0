from typing import Callable, Optional

import structlog
from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session

from core.db import get_db
from core.exceptions import AuthenticationError
from models.user import User
from schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from security import jwt as jwt_utils
from security.policy import Action, Principal, authorize
from services import users as user_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users", tags=["auth"])


def get_bearer_token(authorization: Optional[str] = Header(default=None, alias="Authorization")) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError("No token provided")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("No token provided")
    return token


def get_current_user(token: str = Depends(get_bearer_token), db: Session = Depends(get_db)) -> User:
    claims = jwt_utils.verify_token(token)
    user = db.get(User, claims.id)
    if not user:
        raise AuthenticationError("User not found")
    return user


def require(action: Action) -> Callable[..., User]:
    """Dependency factory: authenticate, then check ``action`` against the policy."""
    def _check(user: User = Depends(get_current_user)) -> User:
        authorize(Principal.from_user(user), action)
        return user
    return _check


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    user = user_service.register(db, data)
    return TokenResponse(token=jwt_utils.issue_token(user.id, user.role))


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = user_service.authenticate(db, data.email, data.password)
    return TokenResponse(token=jwt_utils.issue_token(user.id, user.role))


@router.post("/refresh", response_model=TokenResponse)
def refresh(token: str = Depends(get_bearer_token), user: User = Depends(require(Action.REFRESH_TOKEN))):
    # Same claims, new expiry; the password is not checked again
    new_token = jwt_utils.refresh_token(token)
    logger.info("Token refreshed", user_id=user.id)
    return TokenResponse(token=new_token)
