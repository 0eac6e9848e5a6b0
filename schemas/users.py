from typing import Optional

from pydantic import BaseModel, EmailStr

from models.user import Role


class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    address: Optional[str] = None
    role: Role

    class Config:
        from_attributes = True
