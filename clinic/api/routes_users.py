# clinic/api/routes_users.py
from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinic.api.deps import commit_or_conflict, current_user, get_db
from clinic.api.response import created, ok, paged
from clinic.core.rbac import Perm, require_any, require_perm
from clinic.models.user import User
from clinic.schemas.common import UserMini
from clinic.schemas.user import PasswordReset, UserCreate, UserOut, UserUpdate
from clinic.services import users as user_service
from clinic.services.pagination import paginate

router = APIRouter()


def _out(u: User) -> dict:
    return UserOut.model_validate(u).model_dump()


@router.get("/")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    role: Optional[Literal["admin", "doctor", "receptionist"]] = None,
    state: Optional[Literal["active", "archived"]] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.USERS_MANAGE)
    rows, meta = paginate(user_service.search_query(db, role=role, state=state, search=search), page, limit)
    return paged(rows, meta, _out)


@router.get("/doctors")
def list_doctors(
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.USERS_VIEW_DOCTORS)
    return ok([UserMini.model_validate(u).model_dump() for u in user_service.active_doctors(db)])


@router.get("/{user_id}")
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    if me.id != user_id:
        require_perm(me, Perm.USERS_MANAGE)
    return ok(_out(user_service.get_user(db, user_id)))


@router.post("/")
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.USERS_MANAGE)
    u = user_service.create_user(db, payload)
    commit_or_conflict(db, "Email exists")
    db.refresh(u)
    return created(_out(u))


@router.put("/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.USERS_MANAGE)
    u = user_service.update_user(db, user_service.get_user(db, user_id), payload, actor=me)
    commit_or_conflict(db, "Email exists")
    db.refresh(u)
    return ok(_out(u))


@router.patch("/{user_id}/deactivate")
def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.USERS_MANAGE)
    u = user_service.set_active(db, user_service.get_user(db, user_id), False, actor=me)
    db.commit()
    return ok(_out(u))


@router.patch("/{user_id}/activate")
def activate_user(
    user_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_any(me, [Perm.USERS_MANAGE])
    u = user_service.set_active(db, user_service.get_user(db, user_id), True, actor=me)
    db.commit()
    return ok(_out(u))


@router.put("/{user_id}/reset-password")
def reset_password(
    user_id: int,
    payload: PasswordReset,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    require_perm(me, Perm.USERS_MANAGE)
    user_service.reset_password(db, user_service.get_user(db, user_id), payload.new_password)
    db.commit()
    return ok({"message": "Password reset"})
