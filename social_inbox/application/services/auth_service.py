"""Auth service — bearer token verification.

Tokens are issued by the platform's auth service and signed with the shared
``SECRET_KEY``. The subject claim is the user id.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from social_inbox.config import get_settings
from social_inbox.core.exceptions import AuthenticationError

settings = get_settings()


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str] = None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        return payload
    except JWTError:
        return None


def user_from_token(token: str) -> CurrentUser:
    payload = decode_access_token(token)
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Invalid token")
    return CurrentUser(id=str(subject), email=payload.get("email"))
