# clinic/api/routes_auth.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic.api.deps import (
    commit_or_conflict,
    current_user,
    decode_token,
    get_db,
    load_user_from_claims,
    optional_user,
)
from clinic.api.response import created, ok
from clinic.core.rbac import Perm, iter_user_perm_codes, require_perm
from clinic.core.security import hash_password, verify_password
from clinic.models.user import User, UserRole
from clinic.schemas.auth import ChangePasswordIn, LoginIn, RefreshIn, TokenOut
from clinic.schemas.user import ProfileUpdate, UserCreate, UserOut
from clinic.services import users as user_service
from clinic.utils.jwt import REFRESH, create_access_refresh
from clinic.utils.timezone import now_local

logger = logging.getLogger(__name__)
router = APIRouter()


def _token_payload(user: User) -> dict:
    access, refresh = create_access_refresh(user.email, user.id)
    out = TokenOut(
        access_token=access,
        refresh_token=refresh,
        user=UserOut.model_validate(user),
    ).model_dump()
    out["permissions"] = sorted(iter_user_perm_codes(user))
    return out


@router.post("/register")
def register(
    payload: UserCreate,
    db: Session = Depends(get_db),
    me: Optional[User] = Depends(optional_user),
):
    """
    First account bootstraps the clinic and always becomes admin.
    After that only admins can register staff.
    """
    has_users = (db.query(func.count(User.id)).scalar() or 0) > 0
    if has_users:
        if me is None:
            raise HTTPException(status_code=401, detail="Missing token")
        require_perm(me, Perm.USERS_MANAGE)
        role = payload.role
    else:
        role = UserRole.ADMIN.value

    user = user_service.create_user(db, payload, role=role)
    commit_or_conflict(db, "Email or license number already registered")
    db.refresh(user)
    logger.info("Registered user id=%s role=%s", user.id, user.role)
    return created(_token_payload(user))


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account is deactivated")

    user.last_login = now_local()
    db.commit()
    db.refresh(user)
    return ok(_token_payload(user))


@router.post("/refresh")
def refresh(payload: RefreshIn, db: Session = Depends(get_db)):
    claims = decode_token(payload.refresh_token, expected_type=REFRESH)
    user = load_user_from_claims(claims, db)
    return ok(_token_payload(user))


@router.get("/me")
def me(user: User = Depends(current_user)):
    data = UserOut.model_validate(user).model_dump()
    data["permissions"] = sorted(iter_user_perm_codes(user))
    return ok(data)


@router.put("/me")
def update_me(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    data = payload.model_dump(exclude_unset=True)
    if data.get("full_name") is None:
        data.pop("full_name", None)
    if "specialization" in data and not user.is_doctor:
        data.pop("specialization")
    for k, v in data.items():
        setattr(user, k, v)
    db.commit()
    db.refresh(user)
    return ok(UserOut.model_validate(user).model_dump())


@router.put("/change-password")
def change_password(
    payload: ChangePasswordIn,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    if not verify_password(payload.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise HTTPException(status_code=400, detail="New password must differ from the current one")
    user.password_hash = hash_password(payload.new_password)
    db.commit()
    return ok({"message": "Password changed"})


@router.post("/logout")
def logout(user: User = Depends(current_user)):
    # tokens are stateless; the client drops them
    logger.info("Logout user id=%s", user.id)
    return ok({"message": "Logged out"})
