"""Messaging/gems service layer for the REST endpoints."""

import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from config import CHAT_MAX_MESSAGES_PER_MINUTE, CONVERSATION_HISTORY_LIMIT
from core.errors import InsufficientGems, LedgerError
from core.rate_limit import default_rate_limiter
from core.users import get_user_by_id, get_user_role, get_users_by_ids, public_profile
from models import GemTransactionType, Role
from utils.message_sanitizer import sanitize_message

from . import assignments as assignment_directory
from . import ledger
from . import repository as messaging_repository
from .dispatcher import gem_cost_for

logger = logging.getLogger(__name__)


# --- Messages ---


async def send_message(db, *, current_user, request, message_router):
    """
    Store a message sent over HTTP and push it to whoever is online.

    Unlike the live channel, the balance is checked up front and the debit
    commits together with the message.
    """
    receiver_role = get_user_role(db, user_id=request.receiverId)
    if receiver_role is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receiver not found")

    content = sanitize_message(request.content)
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty")

    rate = default_rate_limiter.allow(
        key=f"chat:rest:{current_user.id}",
        limit=CHAT_MAX_MESSAGES_PER_MINUTE,
        window_seconds=60,
    )
    if not rate.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit exceeded. Maximum {CHAT_MAX_MESSAGES_PER_MINUTE} messages per minute.",
        )

    sender_role = current_user.role_enum
    cost = gem_cost_for(sender_role)
    if cost > 0 and not ledger.can_afford(db, current_user.id, cost):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Insufficient gems")

    try:
        message = messaging_repository.append_message(
            db,
            sender_id=current_user.id,
            receiver_id=request.receiverId,
            content=content,
            gem_cost=cost,
        )
        if cost > 0:
            ledger.record_transaction(
                db,
                current_user.id,
                cost,
                GemTransactionType.SPEND,
                description=f"Message {message.id}",
            )
        db.commit()
    except InsufficientGems:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Insufficient gems")
    except (LedgerError, SQLAlchemyError) as e:
        db.rollback()
        logger.error(f"Failed to send message from user {current_user.id}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send message")

    payload = messaging_repository.serialize_message(message)
    await message_router.deliver(payload, sender_role=sender_role, receiver_role=receiver_role)
    return payload


def get_conversation(db, *, current_user, user_id: str, limit: Optional[int] = None):
    if get_user_by_id(db, user_id=user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    messages = messaging_repository.get_conversation(
        db, current_user.id, user_id, limit=limit or CONVERSATION_HISTORY_LIMIT
    )
    return {"messages": [messaging_repository.serialize_message(m) for m in messages]}


def mark_conversation_read(db, *, current_user, user_id: str):
    updated = messaging_repository.mark_conversation_read(
        db, reader_id=current_user.id, peer_id=user_id
    )
    db.commit()
    return {"updated": updated}


# --- Gems ---


def get_gem_balance(db, *, current_user):
    return {"userId": current_user.id, "gems": ledger.get_balance(db, current_user.id)}


def get_gem_history(db, *, current_user, limit: int, offset: int):
    history = ledger.get_history(db, current_user.id, limit=limit, offset=offset)
    return [ledger.serialize_transaction(t) for t in history]


def purchase_gems(db, *, current_user, request):
    """Mock purchase: no payment provider, the ledger is credited directly."""
    try:
        transaction = ledger.commit_transaction(
            db,
            current_user.id,
            request.amount,
            GemTransactionType.PURCHASE,
            description=f"Purchased {request.packageType} package",
        )
    except LedgerError as e:
        logger.error(f"Gem purchase failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to purchase gems")
    return {"success": True, "transaction": ledger.serialize_transaction(transaction)}


# --- Workers ---


def list_worker_assignments(db, *, current_user):
    model_ids = assignment_directory.get_assigned_models(db, current_user.id)
    models = get_users_by_ids(db, user_ids=sorted(model_ids))
    return [public_profile(m) for m in sorted(models, key=lambda u: u.username)]


def list_worker_conversations(db, *, current_user):
    model_ids = assignment_directory.get_assigned_models(db, current_user.id)
    summaries = messaging_repository.list_worker_conversations(db, model_ids=model_ids)

    user_ids = {s["fan_id"] for s in summaries} | {s["model_id"] for s in summaries}
    profiles = {u.id: public_profile(u) for u in get_users_by_ids(db, user_ids=sorted(user_ids))}

    conversations = []
    for summary in summaries:
        fan, model = profiles.get(summary["fan_id"]), profiles.get(summary["model_id"])
        if fan is None or model is None:
            continue
        conversations.append(
            {
                "id": f"{summary['fan_id']}-{summary['model_id']}",
                "fan": fan,
                "model": model,
                "lastMessage": messaging_repository.serialize_message(summary["last_message"]),
            }
        )
    return conversations


# --- Admin ---


def assign_worker(db, *, request):
    try:
        assignment = assignment_directory.assign(db, request.workerId, request.modelId)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"workerId": assignment.worker_id, "modelId": assignment.model_id, "isActive": assignment.is_active}


def unassign_worker(db, *, request):
    removed = assignment_directory.unassign(db, request.workerId, request.modelId)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")
    db.commit()
    return {"workerId": request.workerId, "modelId": request.modelId, "isActive": False}
