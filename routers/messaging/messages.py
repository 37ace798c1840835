from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from db import get_db
from routers.dependencies import get_current_user, get_message_router
from .schemas import ConversationResponse, MarkReadResponse, MessageEnvelope, SendMessageRequest
from .service import (
    get_conversation as service_get_conversation,
    mark_conversation_read as service_mark_conversation_read,
    send_message as service_send_message,
)

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.post("", response_model=MessageEnvelope)
async def send_message(
    request: SendMessageRequest,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
    message_router=Depends(get_message_router),
):
    """Send a message over HTTP (balance checked before anything is stored)"""
    return await service_send_message(
        db, current_user=current_user, request=request, message_router=message_router
    )


@router.get("/{user_id}", response_model=ConversationResponse)
async def get_conversation(
    user_id: str = Path(..., description="The other participant"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Conversation between the caller and `user_id`, oldest first"""
    return service_get_conversation(db, current_user=current_user, user_id=user_id, limit=limit)


@router.post("/{user_id}/read", response_model=MarkReadResponse)
async def mark_conversation_read(
    user_id: str = Path(..., description="Sender whose messages are marked read"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_mark_conversation_read(db, current_user=current_user, user_id=user_id)
