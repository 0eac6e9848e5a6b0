from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional

from schemas.auth import strip_text


class StoreCreate(BaseModel):
    name: str = Field(min_length=1, max_length=60)
    email: EmailStr
    address: str = Field(min_length=1, max_length=400)
    owner_id: Optional[int] = Field(default=None, alias="ownerId", ge=1)

    class Config:
        populate_by_name = True

    @field_validator("name", "address", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        return strip_text(v)


class StoreUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=60)
    email: EmailStr
    address: str = Field(min_length=1, max_length=400)

    @field_validator("name", "address", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        return strip_text(v)


class AdminStoreCreate(BaseModel):
    """Admin store creation: stricter than the public form and the owner is mandatory."""
    name: str = Field(min_length=20, max_length=60)
    email: EmailStr
    address: str = Field(min_length=1, max_length=400)
    owner_id: int = Field(alias="ownerId", ge=1)

    class Config:
        populate_by_name = True

    @field_validator("name", "address", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        return strip_text(v)


class StoreOut(BaseModel):
    id: int
    owner_id: int
    name: str
    email: str
    address: str
    average_rating: float = 0
    total_ratings: int = 0

    class Config:
        from_attributes = True


class AdminStoreCreated(BaseModel):
    message: str
    store: StoreOut
