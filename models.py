from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, DateTime, Text, UniqueConstraint, Index
)
import uuid
from enum import Enum as PyEnum
from sqlalchemy.orm import relationship
from db import Base
from datetime import datetime


def generate_user_id():
    """Generate a string UUID primary key."""
    return str(uuid.uuid4())


class Role(str, PyEnum):
    FAN = "fan"
    MODEL = "model"
    WORKER = "worker"
    ADMIN = "admin"


class GemTransactionType(str, PyEnum):
    PURCHASE = "purchase"
    EARN = "earn"
    SPEND = "spend"


# =================================
#  Users Table
# =================================
class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True, default=generate_user_id)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(String(16), nullable=False, index=True)  # fan, model, worker, admin
    profile_image = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    gems = Column(Integer, default=0, nullable=False)  # Only meaningful for fans
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    gem_transactions = relationship("GemTransaction", back_populates="user")

    @property
    def role_enum(self) -> Role:
        return Role(self.role)


# =================================
#  Messages Table
# =================================
class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    gem_cost = Column(Integer, default=1, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])

    __table_args__ = (
        Index("ix_messages_pair_created", "sender_id", "receiver_id", "created_at"),
    )


# =================================
#  Worker Assignments Table
# =================================
class WorkerAssignment(Base):
    __tablename__ = "worker_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    worker_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    model_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    worker = relationship("User", foreign_keys=[worker_id])
    model = relationship("User", foreign_keys=[model_id])

    __table_args__ = (
        UniqueConstraint("worker_id", "model_id", name="uq_worker_model"),
    )


# =================================
#  Gem Transactions Table
# =================================
class GemTransaction(Base):
    __tablename__ = "gem_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # Positive magnitude; direction comes from type
    type = Column(String(16), nullable=False)  # purchase, earn, spend
    description = Column(String, nullable=True)
    balance_after = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="gem_transactions")
