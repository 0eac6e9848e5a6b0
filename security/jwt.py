from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from core.config import settings
from core.exceptions import InvalidToken, TokenExpired
from models.user import Role


@dataclass(frozen=True)
class TokenClaims:
    id: int
    role: Role


def _encode(payload: Dict[str, Any], secret: str, minutes: int) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=minutes)
    to_encode = {"iat": int(now.timestamp()), "exp": int(exp.timestamp()), **payload}
    return jwt.encode(to_encode, secret, algorithm=settings.JWT_ALG)


def issue_token(user_id: int, role: Role | str) -> str:
    # Identity and role only: name/email can change and would go stale
    payload = {"sub": str(user_id), "role": Role(role).value}
    return _encode(payload, settings.JWT_SECRET, settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def verify_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError:
        raise InvalidToken()

    try:
        return TokenClaims(id=int(payload["sub"]), role=Role(payload.get("role")))
    except (KeyError, TypeError, ValueError):
        raise InvalidToken("Invalid token claims")


def refresh_token(token: str) -> str:
    """Exchange a still-valid token for a fresh one carrying the same claims."""
    claims = verify_token(token)
    return issue_token(claims.id, claims.role)
