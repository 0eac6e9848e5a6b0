from datetime import datetime
from sqlalchemy import DateTime, ForeignKey, Integer, Text, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (
        # One rating per (user, store); a second submission updates the score
        UniqueConstraint("user_id", "store_id", name="uq_ratings_user_store"),
        CheckConstraint("score BETWEEN 1 AND 5", name="ck_ratings_score_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), index=True)
    score: Mapped[int] = mapped_column(Integer)
    owner_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_response_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="ratings")
    store = relationship("Store", back_populates="ratings")
