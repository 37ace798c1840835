import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from auth import verify_token
from core.errors import InvalidCredential
from core.users import get_user_by_id
from db import get_db
from models import Role, User

logger = logging.getLogger(__name__)


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization") or request.headers.get("Authorization")
    if not auth_header or not auth_header.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authorization token missing.")
    return auth_header.split(" ", 1)[1].strip()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Validates the bearer JWT and returns the matching active user.
    """
    token = _bearer_token(request)
    try:
        identity = verify_token(token)
    except InvalidCredential as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    user = get_user_by_id(db, user_id=identity.user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user


def require_role(*roles: Role):
    """Dependency factory: the caller must hold one of `roles`."""
    allowed = {Role(r) for r in roles}

    def _check(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role_enum not in allowed:
            names = ", ".join(sorted(r.value for r in allowed))
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{names.capitalize()} access required for this endpoint",
            )
        return current_user

    return _check


def get_registry(request: Request):
    return request.app.state.registry


def get_message_router(request: Request):
    return request.app.state.message_router
