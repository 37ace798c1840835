from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from db import get_db
from models import Role
from routers.dependencies import require_role
from .schemas import UserProfile, WorkerConversation
from .service import (
    list_worker_assignments as service_list_worker_assignments,
    list_worker_conversations as service_list_worker_conversations,
)

router = APIRouter(prefix="/worker", tags=["Worker"])


@router.get("/assignments", response_model=List[UserProfile])
async def get_assignments(
    db: Session = Depends(get_db), current_user=Depends(require_role(Role.WORKER))
):
    """Models the calling worker answers for"""
    return service_list_worker_assignments(db, current_user=current_user)


@router.get("/conversations", response_model=List[WorkerConversation])
async def get_conversations(
    db: Session = Depends(get_db), current_user=Depends(require_role(Role.WORKER))
):
    """Fan conversations with the worker's assigned models, most recent first"""
    return service_list_worker_conversations(db, current_user=current_user)
