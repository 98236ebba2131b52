# clinic/api/deps.py
from __future__ import annotations

from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException
from jose import jwt, JWTError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic.core.config import settings
from clinic.db.session import SessionLocal
from clinic.models.user import User
from clinic.utils.jwt import ACCESS


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =========================================================
# AUTH HELPERS
# =========================================================
def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def decode_token(raw_token: str, *, expected_type: str = ACCESS) -> dict:
    try:
        payload = jwt.decode(raw_token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("typ") != expected_type:
        raise HTTPException(status_code=401, detail="Invalid token type")
    return payload


def load_user_from_claims(payload: dict, db: Session) -> User:
    uid = payload.get("uid")
    email = payload.get("sub")
    if not uid or not email:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user: Optional[User] = db.get(User, uid)
    if not user or user.email != email:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="User inactive")
    return user


def current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    raw = _extract_bearer(authorization)
    if not raw:
        raise HTTPException(status_code=401, detail="Missing token")
    return load_user_from_claims(decode_token(raw), db)


def optional_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[User]:
    raw = _extract_bearer(authorization)
    if not raw:
        return None
    return load_user_from_claims(decode_token(raw), db)


def commit_or_conflict(db: Session, msg: str = "Duplicate or invalid reference") -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=msg)
