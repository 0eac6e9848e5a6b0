from typing import List, Optional

import structlog
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.db import transaction
from core.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from models.user import Role, User
from schemas.auth import ChangePasswordRequest, RegisterRequest
from schemas.profile import ProfileUpdate
from security.password import hash_password, verify_password

logger = structlog.get_logger(__name__)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.execute(select(User).where(User.email == email.lower())).scalar_one_or_none()


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def create_user(db: Session, name: str, email: str, password: str, address: Optional[str] = None, role: Role = Role.USER) -> User:
    email = email.lower()
    if get_user_by_email(db, email):
        raise ConflictError("Email already registered")
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        address=address,
        role=role,
    )
    try:
        with transaction(db):
            db.add(user)
            db.flush()
    except IntegrityError:
        # Another registration with the same email won the race
        raise ConflictError("Email already registered")
    logger.info("User registered", user_id=user.id, role=Role(user.role).value)
    return user


def register(db: Session, data: RegisterRequest) -> User:
    return create_user(db, data.name, data.email, data.password, data.address, data.role)


def authenticate(db: Session, email: str, password: str) -> User:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        logger.info("Login failed", email=email.lower())
        raise AuthenticationError("Invalid credentials")
    return user


def update_profile(db: Session, user: User, data: ProfileUpdate) -> User:
    with transaction(db):
        user.name = data.name
        user.address = data.address
    return user


def change_password(db: Session, user: User, data: ChangePasswordRequest) -> None:
    errors = data.problems()
    if data.current_password and not verify_password(data.current_password, user.password_hash):
        errors.insert(0, {"field": "currentPassword", "message": "Current password is incorrect"})
    if errors:
        raise ValidationError(errors)
    with transaction(db):
        user.password_hash = hash_password(data.new_password)
    logger.info("Password changed", user_id=user.id)


def list_users(db: Session, role: Optional[Role] = None, search: Optional[str] = None) -> List[User]:
    stmt = select(User).order_by(User.id)
    if role is not None:
        stmt = stmt.where(User.role == role)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(User.name.ilike(pattern), User.email.ilike(pattern), User.address.ilike(pattern)))
    return list(db.execute(stmt).scalars())


def role_of(db: Session, user_id: int) -> Optional[Role]:
    user = db.get(User, user_id)
    return Role(user.role) if user else None


def ensure_admin(db: Session, name: str, email: str, password: str) -> Optional[User]:
    """Create the default admin account when it does not exist yet."""
    if get_user_by_email(db, email):
        return None
    user = create_user(db, name=name, email=email, password=password, role=Role.ADMIN)
    logger.info("Default admin user created", email=user.email)
    return user
