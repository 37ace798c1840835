from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from db import get_db
from routers.dependencies import get_current_user
from .schemas import GemBalanceResponse, GemTransactionEnvelope, PurchaseGemsRequest, PurchaseGemsResponse
from .service import (
    get_gem_balance as service_get_gem_balance,
    get_gem_history as service_get_gem_history,
    purchase_gems as service_purchase_gems,
)

router = APIRouter(prefix="/gems", tags=["Gems"])


@router.get("/balance", response_model=GemBalanceResponse)
async def get_balance(
    db: Session = Depends(get_db), current_user=Depends(get_current_user)
):
    return service_get_gem_balance(db, current_user=current_user)


@router.get("/history", response_model=List[GemTransactionEnvelope])
async def get_history(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Caller's gem transactions, newest first"""
    return service_get_gem_history(db, current_user=current_user, limit=limit, offset=offset)


@router.post("/purchase", response_model=PurchaseGemsResponse)
async def purchase_gems(
    request: PurchaseGemsRequest,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Mock gem purchase; credits the ledger without a payment provider"""
    return service_purchase_gems(db, current_user=current_user, request=request)
