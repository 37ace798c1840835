"""
Script to initialize database tables and sample accounts for local development.
Run this script after setting up your database connection.

Usage:
    python initialize_db.py
"""

import logging

from config import ENVIRONMENT, LOG_LEVEL
from core.logging import configure_logging
from core.users import create_user, get_users_by_role
from db import create_tables, get_db_context
from models import Role
from routers.messaging.assignments import assign

logger = logging.getLogger(__name__)

SAMPLE_USERS = {
    Role.ADMIN: [("admin", "admin@fanlink.dev", "System Administrator")],
    Role.WORKER: [
        ("worker1", "worker1@fanlink.dev", "Customer support specialist"),
        ("worker2", "worker2@fanlink.dev", "Content moderator"),
        ("worker3", "worker3@fanlink.dev", "Chat support agent"),
    ],
    Role.MODEL: [
        ("bella_rose", "bella@fanlink.dev", "Fashion and lifestyle content creator"),
        ("sofia_star", "sofia@fanlink.dev", "Fitness enthusiast and wellness coach"),
        ("luna_night", "luna@fanlink.dev", "Artist and creative soul"),
    ],
    Role.FAN: [
        ("fan_john", "john@fanlink.dev", "Love following amazing creators!"),
        ("fan_mike", "mike@fanlink.dev", "Always here to support great content"),
    ],
}


def seed_sample_data(db) -> dict:
    """
    Create the sample accounts and give each worker one model.

    Only runs against a database without an admin; returns the number of
    rows created per role (empty when nothing was done).
    """
    if get_users_by_role(db, role=Role.ADMIN):
        logger.info("Database already contains data; skipping seed")
        return {}

    created = {}
    ids = {}
    for role, rows in SAMPLE_USERS.items():
        ids[role] = []
        for username, email, bio in rows:
            user = create_user(db, username=username, email=email, role=role)
            user.bio = bio
            ids[role].append(user.id)
        created[role.value] = len(rows)

    for worker_id, model_id in zip(ids[Role.WORKER], ids[Role.MODEL]):
        assign(db, worker_id, model_id)
    created["assignments"] = min(len(ids[Role.WORKER]), len(ids[Role.MODEL]))

    db.commit()
    logger.info(f"Database seeded: {created}")
    return created


def init_db():
    """Initialize database tables and sample data"""
    create_tables()
    with get_db_context() as db:
        seed_sample_data(db)
    logger.info("Database initialization complete!")


if __name__ == "__main__":
    configure_logging(environment=ENVIRONMENT, log_level=LOG_LEVEL)
    init_db()
