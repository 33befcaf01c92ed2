# barbershop/auth.py

import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext

from sqlmodel import Session, select
from .config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from .db import get_session
from .exceptions import AuthenticationError
from .models import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


def create_access_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode["exp"] = expire
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def user_from_token(token: str, session: Session) -> User:
    """Decode ``token`` and load its user; AuthenticationError if either fails."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        raise AuthenticationError() from e

    email = payload.get("sub")
    if email is None:
        raise AuthenticationError()

    user = session.exec(
        select(User).where(User.email == email)
    ).first()
    if user is None:
        raise AuthenticationError()
    return user


class TokenIdentity:
    """
    "Get current user id" for code that runs outside the request, such as a
    grace period that finalizes after the request has returned. The token is
    re-checked on every call, so an expired session fails at commit time.
    """

    def __init__(self, token: str, session: Session):
        self.token = token
        self.session = session

    def __call__(self) -> int:
        return user_from_token(self.token, self.session).id


def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> dict:
    try:
        user = user_from_token(token, session)
    except AuthenticationError:
        raise HTTPException(
            status_code=401,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "password_hash": user.password_hash,
    }
