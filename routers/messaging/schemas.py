"""Messaging schemas (WebSocket frames and REST bodies)."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from config import CHAT_MAX_MESSAGE_LENGTH, GEM_PURCHASE_MAX_AMOUNT

CHAT_MESSAGE = "chat_message"
NEW_MESSAGE = "new_message"
MESSAGE_SENT = "message_sent"
ERROR = "error"


class ChatFrame(BaseModel):
    """Inbound `chat_message` frame."""

    type: Literal["chat_message"]
    receiver_id: str = Field(..., alias="receiverId", min_length=1)
    content: str = Field(..., min_length=1, max_length=CHAT_MAX_MESSAGE_LENGTH)

    class Config:
        populate_by_name = True


class MessageEnvelope(BaseModel):
    id: int
    senderId: str
    receiverId: str
    content: str
    gemCost: int
    createdAt: Optional[str] = None
    isRead: bool = False


class SendMessageRequest(BaseModel):
    receiverId: str = Field(..., min_length=1, example="6f1c2a9e-5b7d-4c1e-9a53-0d7e4b2f8c11")
    content: str = Field(..., min_length=1, max_length=CHAT_MAX_MESSAGE_LENGTH, example="hi")


class ConversationResponse(BaseModel):
    messages: List[MessageEnvelope]


class MarkReadResponse(BaseModel):
    updated: int


class GemBalanceResponse(BaseModel):
    userId: str
    gems: int


class GemTransactionEnvelope(BaseModel):
    id: int
    userId: str
    amount: int
    type: str
    description: Optional[str] = None
    balanceAfter: int
    createdAt: Optional[str] = None


class PurchaseGemsRequest(BaseModel):
    amount: int = Field(..., gt=0, le=GEM_PURCHASE_MAX_AMOUNT, example=50)
    packageType: str = Field("custom", min_length=1, max_length=64, example="starter")


class PurchaseGemsResponse(BaseModel):
    success: bool
    transaction: GemTransactionEnvelope


class UserProfile(BaseModel):
    id: str
    username: str
    role: str
    profileImage: Optional[str] = None
    bio: Optional[str] = None
    isActive: bool = True


class WorkerConversation(BaseModel):
    id: str
    fan: UserProfile
    model: UserProfile
    lastMessage: MessageEnvelope


class AssignWorkerRequest(BaseModel):
    workerId: str = Field(..., min_length=1)
    modelId: str = Field(..., min_length=1)


class AssignmentResponse(BaseModel):
    workerId: str
    modelId: str
    isActive: bool
