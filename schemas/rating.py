from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class RatingSubmit(BaseModel):
    store_id: int = Field(alias="storeId", ge=1, strict=True)
    score: int = Field(ge=1, le=5, strict=True)

    class Config:
        populate_by_name = True


class RatingScore(BaseModel):
    """Body of POST /stores/{id}/rate, where the store comes from the path."""
    score: int = Field(ge=1, le=5, strict=True)


class RatingOut(BaseModel):
    id: int
    user_id: int
    store_id: int
    score: int
    # True when this submission inserted the row, False when it updated an existing one
    created: bool

    class Config:
        from_attributes = True


class StoreRatingOut(BaseModel):
    id: int
    user_id: int
    store_id: int
    score: int
    user_name: str
    owner_response: Optional[str] = None
    owner_response_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class OwnerRatingOut(StoreRatingOut):
    store_name: str
    store_address: str


class RatingSummary(BaseModel):
    average: float
    total_ratings: int
    lowest_rating: Optional[int] = None
    highest_rating: Optional[int] = None


class RatingResponseRequest(BaseModel):
    response: str = Field(min_length=1, max_length=1000)

    @field_validator("response", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        return v.strip() if isinstance(v, str) else v
