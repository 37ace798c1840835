"""
Gem Ledger

Atomic gem balance updates backed by an append-only transaction log.
Amounts are stored as positive magnitudes; the transaction type decides the
direction (purchase/earn credit, spend debits).
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from threading import Lock, RLock
from typing import Dict, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import InsufficientGems, LedgerError
from core.users import get_user_by_id, get_user_by_id_for_update
from models import GemTransaction, GemTransactionType

logger = logging.getLogger(__name__)

_CREDIT_TYPES = (GemTransactionType.PURCHASE, GemTransactionType.EARN)

# Serializes check-then-debit per user inside this process; the row lock
# covers other processes on databases that support SELECT FOR UPDATE.
# Entries are dropped once no thread holds or waits on them.
_user_locks: Dict[str, list] = {}
_user_locks_guard = Lock()


@contextmanager
def _user_lock(user_id: str):
    with _user_locks_guard:
        entry = _user_locks.setdefault(user_id, [RLock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _user_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                _user_locks.pop(user_id, None)


def signed_delta(amount: int, kind: GemTransactionType) -> int:
    """Balance change implied by a transaction of `amount` and `kind`."""
    kind = GemTransactionType(kind)
    return amount if kind in _CREDIT_TYPES else -amount


def record_transaction(
    db: Session,
    user_id: str,
    amount: int,
    kind,
    description: Optional[str] = None,
) -> GemTransaction:
    """
    Append a gem transaction and adjust the user's balance in the same unit of work.

    The caller owns the commit; nothing is visible to other sessions until it
    commits, and a rollback discards both the record and the balance change.

    Args:
        db: Database session
        user_id: User id
        amount: Positive number of gems
        kind: purchase / earn / spend
        description: Free-text reason shown in the history

    Returns:
        The flushed GemTransaction

    Raises:
        ValueError: If amount is not positive or kind is unknown
        InsufficientGems: If a spend would make the balance negative
        LedgerError: If the user does not exist or the flush fails
    """
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError("amount must be a positive integer")
    kind = GemTransactionType(kind)

    with _user_lock(user_id):
        user = get_user_by_id_for_update(db, user_id=user_id)
        if not user:
            raise LedgerError(f"User {user_id} not found")

        current_balance = user.gems or 0
        new_balance = current_balance + signed_delta(amount, kind)
        if new_balance < 0:
            raise InsufficientGems(user_id=user_id, balance=current_balance, cost=amount)

        transaction = GemTransaction(
            user_id=user_id,
            amount=amount,
            type=kind.value,
            description=description,
            balance_after=new_balance,
            created_at=datetime.utcnow(),
        )
        db.add(transaction)
        user.gems = new_balance

        try:
            db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Gem ledger flush failed: user={user_id}, kind={kind.value}, error={e}")
            raise LedgerError(f"Could not record {kind.value} of {amount} gems") from e

    logger.info(
        f"Gem transaction recorded: user={user_id}, kind={kind.value}, "
        f"amount={amount}, balance={new_balance}"
    )
    return transaction


def commit_transaction(
    db: Session,
    user_id: str,
    amount: int,
    kind,
    description: Optional[str] = None,
) -> GemTransaction:
    """
    record_transaction + commit, rolling back on any failure.

    The per-user lock is held until the commit lands, so the next debit for
    the same user reads the committed balance.
    """
    with _user_lock(user_id):
        try:
            transaction = record_transaction(db, user_id, amount, kind, description)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise LedgerError(f"Could not commit gem transaction for user {user_id}") from e
        except Exception:
            db.rollback()
            raise
    return transaction


def get_balance(db: Session, user_id: str) -> int:
    user = get_user_by_id(db, user_id=user_id)
    if not user:
        raise LedgerError(f"User {user_id} not found")
    return user.gems or 0


def can_afford(db: Session, user_id: str, cost: int) -> bool:
    try:
        return get_balance(db, user_id) >= cost
    except LedgerError:
        return False


def net_ledger_delta(db: Session, user_id: str) -> int:
    """
    Net balance change recorded in the transaction log, for reconciliation.

    Starting balances granted at registration are not in the log, so a
    consistent user satisfies `user.gems == starting_gems + net_ledger_delta`.
    """
    delta = case(
        (GemTransaction.type == GemTransactionType.SPEND.value, -GemTransaction.amount),
        else_=GemTransaction.amount,
    )
    total = db.query(func.sum(delta)).filter(GemTransaction.user_id == user_id).scalar()
    return int(total or 0)


def get_history(db: Session, user_id: str, limit: int = 100, offset: int = 0) -> list:
    return (
        db.query(GemTransaction)
        .filter(GemTransaction.user_id == user_id)
        .order_by(GemTransaction.created_at.desc(), GemTransaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def serialize_transaction(transaction: GemTransaction) -> dict:
    return {
        "id": transaction.id,
        "userId": transaction.user_id,
        "amount": transaction.amount,
        "type": transaction.type,
        "description": transaction.description,
        "balanceAfter": transaction.balance_after,
        "createdAt": transaction.created_at.isoformat() if transaction.created_at else None,
    }
