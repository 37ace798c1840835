"""Worker <-> model assignment directory.

Only active rows count. `assign`/`unassign` are idempotent and owned by the
admin endpoints; the dispatcher only reads.
"""

import logging

from sqlalchemy.orm import Session

from core.users import get_user_role
from models import Role, WorkerAssignment

logger = logging.getLogger(__name__)


def get_assigned_models(db: Session, worker_id: str) -> set[str]:
    rows = (
        db.query(WorkerAssignment.model_id)
        .filter(WorkerAssignment.worker_id == worker_id, WorkerAssignment.is_active == True)  # noqa: E712
        .all()
    )
    return {row[0] for row in rows}


def get_assigned_workers(db: Session, model_id: str) -> set[str]:
    rows = (
        db.query(WorkerAssignment.worker_id)
        .filter(WorkerAssignment.model_id == model_id, WorkerAssignment.is_active == True)  # noqa: E712
        .all()
    )
    return {row[0] for row in rows}


def _get_assignment(db: Session, worker_id: str, model_id: str):
    return (
        db.query(WorkerAssignment)
        .filter(WorkerAssignment.worker_id == worker_id, WorkerAssignment.model_id == model_id)
        .first()
    )


def assign(db: Session, worker_id: str, model_id: str) -> WorkerAssignment:
    """
    Make `worker_id` deliver/answer for `model_id`.

    Raises:
        ValueError: If the ids do not belong to a worker and a model
    """
    if get_user_role(db, user_id=worker_id) != Role.WORKER:
        raise ValueError(f"User {worker_id} is not a worker")
    if get_user_role(db, user_id=model_id) != Role.MODEL:
        raise ValueError(f"User {model_id} is not a model")

    assignment = _get_assignment(db, worker_id, model_id)
    if assignment is None:
        assignment = WorkerAssignment(worker_id=worker_id, model_id=model_id, is_active=True)
        db.add(assignment)
        logger.info(f"Worker assigned: worker={worker_id}, model={model_id}")
    elif not assignment.is_active:
        assignment.is_active = True
        logger.info(f"Worker assignment reactivated: worker={worker_id}, model={model_id}")
    db.flush()
    return assignment


def unassign(db: Session, worker_id: str, model_id: str) -> bool:
    """Deactivate the pairing; returns False when it was not active."""
    assignment = _get_assignment(db, worker_id, model_id)
    if assignment is None or not assignment.is_active:
        return False
    assignment.is_active = False
    db.flush()
    logger.info(f"Worker unassigned: worker={worker_id}, model={model_id}")
    return True
