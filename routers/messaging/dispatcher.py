"""
Message router for the live channel.

Each inbound frame walks RECEIVED -> VALIDATED -> PERSISTED -> GEM_ADJUSTED ->
DELIVERED -> ACKNOWLEDGED, or stops at REJECTED. Once a message is persisted
the rest of the walk is shielded from cancellation so a sender disconnecting
mid-frame never leaves a stored message undebited or undelivered.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from auth import Identity
from config import CHAT_MAX_MESSAGES_PER_MINUTE, MESSAGE_GEM_COST
from core.errors import InvalidFrame, LedgerError, MessageStoreError
from core.logging import hash_user_id
from core.ports.channels import Channel
from core.rate_limit import RateLimiter, default_rate_limiter
from core.users import get_user_role
from db import get_db_context
from models import GemTransactionType, Role
from utils.message_sanitizer import sanitize_message

from .assignments import get_assigned_workers
from .ledger import commit_transaction
from .registry import ConnectionRegistry
from .repository import append_message, serialize_message, waive_gem_cost
from .schemas import ERROR, MESSAGE_SENT, NEW_MESSAGE, ChatFrame

logger = logging.getLogger(__name__)


class FrameState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    PERSISTED = "persisted"
    GEM_ADJUSTED = "gem_adjusted"
    DELIVERED = "delivered"
    ACKNOWLEDGED = "acknowledged"
    REJECTED = "rejected"


@dataclass
class DeliveryReport:
    state: FrameState
    message: Optional[Dict[str, Any]] = None
    attempted: List[str] = field(default_factory=list)
    delivered: List[str] = field(default_factory=list)
    acknowledged: bool = False
    error: Optional[str] = None


def gem_cost_for(role: Role) -> int:
    """Gems charged to the sender of one message."""
    role = Role(role)
    if role == Role.FAN:
        return MESSAGE_GEM_COST
    if role in (Role.MODEL, Role.WORKER, Role.ADMIN):
        return 0
    raise ValueError(f"Unhandled role: {role}")


def fans_out_to_workers(sender_role: Role, receiver_role: Role) -> bool:
    """Only fan -> model traffic is mirrored to the model's assigned workers."""
    sender_role, receiver_role = Role(sender_role), Role(receiver_role)
    if sender_role in (Role.MODEL, Role.WORKER, Role.ADMIN):
        return False
    if sender_role != Role.FAN:
        raise ValueError(f"Unhandled role: {sender_role}")
    if receiver_role == Role.MODEL:
        return True
    if receiver_role in (Role.FAN, Role.WORKER, Role.ADMIN):
        return False
    raise ValueError(f"Unhandled role: {receiver_role}")


def parse_frame(raw: Any) -> ChatFrame:
    """
    Decode and validate an inbound frame.

    Raises:
        InvalidFrame: For non-JSON text, unknown frame types, or bad fields
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except (TypeError, ValueError):
            raise InvalidFrame("Frame is not valid JSON")
    if not isinstance(raw, dict):
        raise InvalidFrame("Frame must be a JSON object")
    if raw.get("type") != "chat_message":
        raise InvalidFrame(f"Unsupported frame type: {raw.get('type')!r}")

    try:
        frame = ChatFrame.model_validate(raw)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise InvalidFrame(f"Invalid chat_message fields: {fields}")

    content = sanitize_message(frame.content)
    if not content:
        raise InvalidFrame("Message cannot be empty")
    return frame.model_copy(update={"content": content})


class MessageRouter:
    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        session_factory: Callable = get_db_context,
        rate_limiter: RateLimiter = default_rate_limiter,
        max_messages_per_minute: int = CHAT_MAX_MESSAGES_PER_MINUTE,
    ):
        self.registry = registry
        self._session_factory = session_factory
        self._rate_limiter = rate_limiter
        self._max_per_minute = max_messages_per_minute
        # Post-persist steps still running, kept alive past a cancelled caller
        self._inflight: Set[asyncio.Future] = set()

    async def handle_frame(
        self, sender: Identity, raw: Any, *, reply_to: Optional[Channel] = None
    ) -> DeliveryReport:
        """
        Process one inbound frame from `sender`.

        `reply_to` is the channel the frame arrived on; error and ack frames go
        there. Without it they go to whatever channel the registry holds for
        the sender.
        """
        report = DeliveryReport(state=FrameState.RECEIVED)
        try:
            frame = parse_frame(raw)
            self._check_rate(sender)
        except InvalidFrame as e:
            return await self._reject(sender, report, e.code, e.detail, reply_to)
        report.state = FrameState.VALIDATED

        try:
            message, sender_role, receiver_role = await run_in_threadpool(
                self._persist, sender.user_id, frame
            )
        except InvalidFrame as e:
            return await self._reject(sender, report, e.code, e.detail, reply_to)
        except MessageStoreError as e:
            return await self._reject(sender, report, "message_not_saved", str(e), reply_to)
        report.state = FrameState.PERSISTED
        report.message = message

        task = asyncio.ensure_future(
            self._complete(sender, report, sender_role, receiver_role, reply_to)
        )
        self._inflight.add(task)
        task.add_done_callback(self._finish_inflight)
        return await asyncio.shield(task)

    def _finish_inflight(self, task: "asyncio.Future") -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Routing failed after persist: {error!r}")

    def _check_rate(self, sender: Identity) -> None:
        result = self._rate_limiter.allow(
            key=f"chat:ws:{sender.user_id}",
            limit=self._max_per_minute,
            window_seconds=60,
        )
        if not result.allowed:
            raise InvalidFrame(
                f"Rate limit exceeded. Retry in {result.retry_after_seconds}s",
                code="rate_limited",
            )

    def _persist(self, sender_id: str, frame: ChatFrame):
        with self._session_factory() as db:
            try:
                sender_role = get_user_role(db, user_id=sender_id)
                if sender_role is None:
                    raise InvalidFrame("Sender not found")
                receiver_role = get_user_role(db, user_id=frame.receiver_id)
                if receiver_role is None:
                    raise InvalidFrame("Receiver not found")

                message = append_message(
                    db,
                    sender_id=sender_id,
                    receiver_id=frame.receiver_id,
                    content=frame.content,
                    gem_cost=gem_cost_for(sender_role),
                )
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to persist message from {hash_user_id(sender_id)}: {e}")
                raise MessageStoreError("Message could not be saved") from e
            return serialize_message(message), sender_role, receiver_role

    def _debit(self, sender_id: str, message: Dict[str, Any]) -> None:
        with self._session_factory() as db:
            commit_transaction(
                db,
                sender_id,
                message["gemCost"],
                GemTransactionType.SPEND,
                description=f"Message {message['id']}",
            )

    def _waive(self, message: Dict[str, Any]) -> None:
        with self._session_factory() as db:
            try:
                waive_gem_cost(db, message_id=message["id"])
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise

    def _resolve_workers(self, model_id: str) -> set:
        with self._session_factory() as db:
            return get_assigned_workers(db, model_id)

    async def _complete(
        self,
        sender: Identity,
        report: DeliveryReport,
        sender_role: Role,
        receiver_role: Role,
        reply_to: Optional[Channel],
    ) -> DeliveryReport:
        message = report.message

        if message["gemCost"] > 0:
            try:
                await run_in_threadpool(self._debit, sender.user_id, message)
            except LedgerError as e:
                logger.warning(f"Gem debit failed for message {message['id']}, message kept uncharged: {e}")
                try:
                    await run_in_threadpool(self._waive, message)
                    message["gemCost"] = 0
                except SQLAlchemyError as waive_error:
                    logger.error(f"Could not waive cost of message {message['id']}: {waive_error}")
        report.state = FrameState.GEM_ADJUSTED

        report.attempted, report.delivered = await self.deliver(
            message, sender_role=sender_role, receiver_role=receiver_role
        )
        report.state = FrameState.DELIVERED

        ack = {"type": MESSAGE_SENT, "message": message}
        if reply_to is not None:
            report.acknowledged = await self.registry.send(reply_to, ack, user_id=sender.user_id)
        else:
            report.acknowledged = await self.registry.push(sender.user_id, ack)
        report.state = FrameState.ACKNOWLEDGED
        logger.debug(
            f"Message {message['id']} routed: delivered={len(report.delivered)}/"
            f"{len(report.attempted)}, acknowledged={report.acknowledged}"
        )
        return report

    async def deliver(
        self, message: Dict[str, Any], *, sender_role: Role, receiver_role: Role
    ) -> tuple[List[str], List[str]]:
        """
        Push `new_message` to the receiver and, for fan -> model traffic, to
        every worker assigned to the model. Returns (attempted, delivered).
        """
        receiver_id = message["receiverId"]
        destinations = [receiver_id]

        if fans_out_to_workers(sender_role, receiver_role):
            try:
                workers = await run_in_threadpool(self._resolve_workers, receiver_id)
            except Exception as e:
                logger.exception(f"Could not resolve workers for model {hash_user_id(receiver_id)}: {e}")
                workers = set()
            destinations.extend(sorted(w for w in workers if w not in destinations))

        frame = {"type": NEW_MESSAGE, "message": message}
        results = await asyncio.gather(
            *(self.registry.push(user_id, frame) for user_id in destinations)
        )
        delivered = [user_id for user_id, ok in zip(destinations, results) if ok]
        return destinations, delivered

    async def _reject(
        self,
        sender: Identity,
        report: DeliveryReport,
        code: str,
        detail: str,
        reply_to: Optional[Channel],
    ) -> DeliveryReport:
        logger.info(f"Frame rejected: user={hash_user_id(sender.user_id)}, code={code}, detail={detail}")
        report.state = FrameState.REJECTED
        report.error = code
        error = {"type": ERROR, "error": code, "detail": detail}
        if reply_to is not None:
            await self.registry.send(reply_to, error, user_id=sender.user_id)
        else:
            await self.registry.push(sender.user_id, error)
        return report
