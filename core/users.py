"""User lookup facade.

The messaging domain does not query the `User` model directly. It calls these
helpers and passes user ids around.
"""

from typing import Optional

from sqlalchemy.orm import Session

from config import DEFAULT_FAN_GEMS
from models import Role, User


def get_user_by_id(db: Session, *, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_id_for_update(db: Session, *, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).with_for_update().first()


def get_users_by_ids(db: Session, *, user_ids: list[str]) -> list[User]:
    if not user_ids:
        return []
    return db.query(User).filter(User.id.in_(user_ids)).all()


def get_users_by_role(db: Session, *, role: Role) -> list[User]:
    return db.query(User).filter(User.role == Role(role).value).all()


def get_user_role(db: Session, *, user_id: str) -> Optional[Role]:
    row = db.query(User.role).filter(User.id == user_id).first()
    return Role(row[0]) if row else None


def create_user(
    db: Session,
    *,
    username: str,
    email: str,
    role: Role,
    gems: Optional[int] = None,
    is_active: bool = True,
) -> User:
    """Create a user; fans start with DEFAULT_FAN_GEMS unless `gems` is given."""
    role = Role(role)
    if gems is None:
        gems = DEFAULT_FAN_GEMS if role == Role.FAN else 0
    if gems < 0:
        raise ValueError("gems cannot be negative")
    user = User(
        username=username,
        email=email,
        role=role.value,
        gems=gems,
        is_active=is_active,
    )
    db.add(user)
    db.flush()
    return user


def public_profile(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role,
        "profileImage": user.profile_image,
        "bio": user.bio,
        "isActive": bool(user.is_active),
    }
