import enum
from datetime import datetime

from sqlalchemy import String, DateTime, Enum, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base


class Role(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"
    OWNER = "owner"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("length(name) BETWEEN 2 AND 60", name="ck_users_name_length"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(60))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    address: Mapped[str | None] = mapped_column(String(400), nullable=True)
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, length=10, values_callable=lambda roles: [r.value for r in roles]),
        default=Role.USER,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    stores = relationship("Store", back_populates="owner", cascade="all, delete", passive_deletes=True)
    ratings = relationship("Rating", back_populates="user", cascade="all, delete", passive_deletes=True)
