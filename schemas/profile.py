from pydantic import BaseModel, Field, field_validator
from typing import Optional

from schemas.auth import strip_text


class ProfileUpdate(BaseModel):
    name: str = Field(min_length=2, max_length=60)
    address: Optional[str] = Field(None, max_length=400)

    @field_validator("name", "address", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        return strip_text(v)


class MessageResponse(BaseModel):
    message: str
