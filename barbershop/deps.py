# barbershop/deps.py

from fastapi import HTTPException, Request

from .db import session_factory


def require_role(user: dict, *roles: str):
    if user["role"] not in roles:
        raise HTTPException(status_code=403, detail="Forbidden")


def get_registry(request: Request):
    return request.app.state.registry


def get_notifications(request: Request):
    return request.app.state.notifications


def get_clock(request: Request):
    return request.app.state.clock


def get_session_factory():
    return session_factory
