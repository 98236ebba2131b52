# FILE: clinic/services/users.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from clinic.core.errors import ConflictError, NotFoundError, ValidationFailed
from clinic.core.security import hash_password
from clinic.models.common import RecordState
from clinic.models.user import User, UserRole
from clinic.schemas.user import UserCreate, UserUpdate


def get_user(db: Session, user_id: int) -> User:
    u = db.get(User, user_id)
    if not u:
        raise NotFoundError("User not found")
    return u


def _ensure_unique(db: Session, *, email: Optional[str] = None,
                   license_number: Optional[str] = None,
                   exclude_id: Optional[int] = None) -> None:
    if email:
        q = db.query(User.id).filter(User.email == email)
        if exclude_id:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise ConflictError("Email exists")
    if license_number:
        q = db.query(User.id).filter(User.license_number == license_number)
        if exclude_id:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise ConflictError("License number already registered")


def create_user(db: Session, payload: UserCreate, *, role: Optional[str] = None) -> User:
    email = payload.email.lower()
    role = role or payload.role
    _ensure_unique(db, email=email, license_number=payload.license_number)

    is_doctor = role == UserRole.DOCTOR.value
    u = User(
        full_name=payload.full_name,
        email=email,
        password_hash=hash_password(payload.password),
        role=role,
        phone=payload.phone,
        specialization=payload.specialization if is_doctor else None,
        license_number=payload.license_number if is_doctor else None,
        state=RecordState.ACTIVE.value,
    )
    db.add(u)
    db.flush()
    return u


def update_user(db: Session, u: User, payload: UserUpdate, *, actor: User) -> User:
    data = payload.model_dump(exclude_unset=True)
    if "email" in data:
        if data["email"] is None:
            data.pop("email")
        else:
            data["email"] = data["email"].lower()
            _ensure_unique(db, email=data["email"], exclude_id=u.id)
    if data.get("license_number"):
        _ensure_unique(db, license_number=data["license_number"], exclude_id=u.id)
    for required in ("full_name", "role"):
        if required in data and data[required] is None:
            data.pop(required)
    if u.id == actor.id and data.get("role") not in (None, u.role):
        raise ValidationFailed("You cannot change your own role")

    for k, v in data.items():
        setattr(u, k, v)
    if u.role != UserRole.DOCTOR.value:
        u.specialization = None
        u.license_number = None
    db.flush()
    return u


def set_active(db: Session, u: User, active: bool, *, actor: User) -> User:
    if u.id == actor.id and not active:
        raise ValidationFailed("You cannot deactivate your own account")
    u.state = RecordState.ACTIVE.value if active else RecordState.ARCHIVED.value
    db.flush()
    return u


def reset_password(db: Session, u: User, new_password: str) -> User:
    u.password_hash = hash_password(new_password)
    db.flush()
    return u


def search_query(db: Session, *, role: Optional[str] = None, state: Optional[str] = None,
                 search: Optional[str] = None) -> Query:
    q = db.query(User)
    if role:
        q = q.filter(User.role == role)
    if state:
        q = q.filter(User.state == state)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(User.full_name.ilike(like), User.email.ilike(like)))
    return q.order_by(User.full_name.asc(), User.id.asc())


def active_doctors(db: Session):
    return (
        db.query(User)
        .filter(User.role == UserRole.DOCTOR.value, User.state == RecordState.ACTIVE.value)
        .order_by(User.full_name.asc())
        .all()
    )
