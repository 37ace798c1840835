from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from db import get_db
from models import Role
from routers.dependencies import require_role
from .schemas import AssignmentResponse, AssignWorkerRequest
from .service import (
    assign_worker as service_assign_worker,
    unassign_worker as service_unassign_worker,
)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/assign-worker", response_model=AssignmentResponse)
async def assign_worker(
    request: AssignWorkerRequest,
    db: Session = Depends(get_db),
    admin_user=Depends(require_role(Role.ADMIN)),
):
    return service_assign_worker(db, request=request)


@router.delete("/assign-worker", response_model=AssignmentResponse)
async def unassign_worker(
    request: AssignWorkerRequest,
    db: Session = Depends(get_db),
    admin_user=Depends(require_role(Role.ADMIN)),
):
    return service_unassign_worker(db, request=request)
