# barbershop/routers/users_routes.py

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import BarberProfile, User
from barbershop.schemas import UserCreate, UserPublic, UserRole, UserUpdate
from barbershop.auth import get_current_user, hash_password

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["users"],
)


def _public(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
    }


@router.get("/me", response_model=UserPublic)
def me(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    user = session.get(User, current_user["id"])
    return _public(user)


@router.post("/users", status_code=201, response_model=UserPublic)
def create_user(
    user: UserCreate,
    session: Session = Depends(get_session),
):
    email = user.email.strip().lower()

    # 1) Check if email already exists
    existing = session.exec(
        select(User).where(User.email == email)
    ).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    # 2) Create user in DB
    db_user = User(
        email=email,
        password_hash=hash_password(user.password),
        role=user.role.value,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
    )
    session.add(db_user)
    session.commit()
    session.refresh(db_user)  # fills db_user.id

    # 3) Barbers get a profile; working hours are set separately
    if user.role == UserRole.barber:
        display_name = user.display_name or user.first_name or email.split("@")[0]
        session.add(BarberProfile(barber_id=db_user.id, display_name=display_name))
        session.commit()

    logger.info(f"Registered {db_user.role} user {db_user.id}")
    return _public(db_user)


@router.patch("/me", response_model=UserPublic)
def update_me(
    changes: UserUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    user = session.get(User, current_user["id"])

    # Only fields sent in the request change; blank strings clear a field
    for field, value in changes.model_dump(exclude_unset=True).items():
        if isinstance(value, str):
            value = value.strip() or None
        setattr(user, field, value)

    session.add(user)
    session.commit()
    session.refresh(user)
    return _public(user)
