"""Message store: append-only message log and conversation reads."""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from models import Message


def append_message(
    db: Session,
    *,
    sender_id: str,
    receiver_id: str,
    content: str,
    gem_cost: int,
) -> Message:
    message = Message(
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        gem_cost=gem_cost,
        is_read=False,
        created_at=datetime.utcnow(),
    )
    db.add(message)
    db.flush()
    return message


def _pair_filter(user_a: str, user_b: str):
    return or_(
        and_(Message.sender_id == user_a, Message.receiver_id == user_b),
        and_(Message.sender_id == user_b, Message.receiver_id == user_a),
    )


def get_conversation(
    db: Session, user_a: str, user_b: str, *, limit: Optional[int] = None
) -> list[Message]:
    """Messages between the unordered pair, oldest first. `limit` keeps the newest N."""
    query = db.query(Message).filter(_pair_filter(user_a, user_b))
    if limit is None:
        return query.order_by(Message.created_at.asc(), Message.id.asc()).all()
    newest = query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
    return list(reversed(newest))


def get_message(db: Session, *, message_id: int) -> Optional[Message]:
    return db.query(Message).filter(Message.id == message_id).first()


def waive_gem_cost(db: Session, *, message_id: int) -> bool:
    """Zero the stored cost of a message whose debit was refused."""
    updated = (
        db.query(Message)
        .filter(Message.id == message_id)
        .update({Message.gem_cost: 0}, synchronize_session=False)
    )
    db.flush()
    return bool(updated)


def count_unread(db: Session, *, receiver_id: str) -> int:
    return (
        db.query(Message)
        .filter(Message.receiver_id == receiver_id, Message.is_read == False)  # noqa: E712
        .count()
    )


def mark_conversation_read(db: Session, *, reader_id: str, peer_id: str) -> int:
    updated = (
        db.query(Message)
        .filter(
            Message.sender_id == peer_id,
            Message.receiver_id == reader_id,
            Message.is_read == False,  # noqa: E712
        )
        .update({Message.is_read: True}, synchronize_session=False)
    )
    db.flush()
    return updated


def list_worker_conversations(db: Session, *, model_ids: Iterable[str]) -> list[dict]:
    """
    One entry per (fan, model) pair touching any of `model_ids`, newest first.

    Each entry carries the pair and the most recent message between them.
    """
    model_ids = set(model_ids)
    if not model_ids:
        return []

    messages = (
        db.query(Message)
        .filter(or_(Message.receiver_id.in_(model_ids), Message.sender_id.in_(model_ids)))
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )

    latest: dict[tuple[str, str], Message] = {}
    for message in messages:
        if message.sender_id in model_ids:
            model_id, counterpart_id = message.sender_id, message.receiver_id
        else:
            model_id, counterpart_id = message.receiver_id, message.sender_id
        latest[(counterpart_id, model_id)] = message

    summaries = [
        {"fan_id": fan_id, "model_id": model_id, "last_message": message}
        for (fan_id, model_id), message in latest.items()
    ]
    summaries.sort(key=lambda s: (s["last_message"].created_at, s["last_message"].id), reverse=True)
    return summaries


def serialize_message(message: Message) -> dict:
    """Wire shape shared by the WebSocket frames and the REST responses."""
    return {
        "id": message.id,
        "senderId": message.sender_id,
        "receiverId": message.receiver_id,
        "content": message.content,
        "gemCost": message.gem_cost,
        "createdAt": message.created_at.isoformat() if message.created_at else None,
        "isRead": bool(message.is_read),
    }
