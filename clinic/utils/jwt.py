# clinic/utils/jwt.py
from datetime import datetime, timedelta
from typing import Tuple

from jose import jwt

from clinic.core.config import settings

ACCESS = "access"
REFRESH = "refresh"


def _create_token(
    *,
    subject: str,
    user_id: int,
    token_type: str,
    expires_delta: timedelta,
) -> str:
    now = datetime.utcnow()
    payload = {
        "sub": subject,  # user email
        "uid": user_id,
        "typ": token_type,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def create_access_token(subject: str, user_id: int) -> str:
    return _create_token(
        subject=subject,
        user_id=user_id,
        token_type=ACCESS,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_access_refresh(subject: str, user_id: int) -> Tuple[str, str]:
    """
    Create an access + refresh token pair for a user.
    """
    access_token = create_access_token(subject, user_id)
    refresh_token = _create_token(
        subject=subject,
        user_id=user_id,
        token_type=REFRESH,
        expires_delta=timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
    )
    return access_token, refresh_token
