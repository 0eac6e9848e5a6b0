import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from models.user import Role

PASSWORD_SYMBOLS = "!@#$%^&*"
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def strip_text(value):
    return value.strip() if isinstance(value, str) else value


def password_strength_problems(password: str) -> list[str]:
    problems = []
    if not re.search(r"[A-Z]", password):
        problems.append("one uppercase letter")
    if not re.search(r"[a-z]", password):
        problems.append("one lowercase letter")
    if not re.search(r"[0-9]", password):
        problems.append("one digit")
    if not any(ch in PASSWORD_SYMBOLS for ch in password):
        problems.append(f"one symbol ({PASSWORD_SYMBOLS})")
    return problems


class RegisterRequest(BaseModel):
    name: str = Field(min_length=20, max_length=60)
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    address: Optional[str] = Field(default=None, max_length=400)
    role: Role = Role.USER

    @field_validator("name", "address", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        return strip_text(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"


class ChangePasswordRequest(BaseModel):
    """Shape only. The password rules run in ``problems()`` so every failure is reported together."""
    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")
    confirm_password: str = Field(alias="confirmPassword")

    class Config:
        populate_by_name = True

    def problems(self) -> list[dict[str, str]]:
        errors = []
        if not self.current_password:
            errors.append({"field": "currentPassword", "message": "Current password is required"})
        new = self.new_password
        if len(new) < PASSWORD_MIN_LENGTH:
            errors.append({"field": "newPassword", "message": f"Password must be at least {PASSWORD_MIN_LENGTH} characters"})
        elif len(new) > PASSWORD_MAX_LENGTH:
            errors.append({"field": "newPassword", "message": f"Password must be at most {PASSWORD_MAX_LENGTH} characters"})
        missing = password_strength_problems(new)
        if missing:
            errors.append({"field": "newPassword", "message": "Password must contain at least " + ", ".join(missing)})
        if new == self.current_password:
            errors.append({"field": "newPassword", "message": "New password must be different from the current password"})
        if self.confirm_password != new:
            errors.append({"field": "confirmPassword", "message": "Passwords do not match"})
        return errors
