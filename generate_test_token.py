"""
Print bearer tokens for existing users, for poking at the API by hand.

Usage:
    python generate_test_token.py                 # one token per seeded user
    python generate_test_token.py <user_id> ...   # specific users
"""

import sys

from auth import create_access_token, decode_jwt_payload
from core.users import get_user_by_id, get_users_by_role
from db import get_db_context
from models import Role


def generate_tokens(db, user_ids=None) -> list:
    """Return (username, role, token) for the given users, or for everyone."""
    if user_ids:
        users = [u for u in (get_user_by_id(db, user_id=uid) for uid in user_ids) if u]
    else:
        users = [u for role in Role for u in get_users_by_role(db, role=role)]
    return [(u.username, u.role, create_access_token(u.id, u.role)) for u in users]


def main():
    with get_db_context() as db:
        tokens = generate_tokens(db, sys.argv[1:])

    if not tokens:
        print("No matching users. Run initialize_db.py first?")
        return

    for username, role, token in tokens:
        print(f"\n{username} ({role}):")
        print(f"Bearer {token}")
        print(f"Payload: {decode_jwt_payload(token)}")


if __name__ == "__main__":
    main()
