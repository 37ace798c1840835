"""Error taxonomy for the messaging core.

Delivery to an offline user is not an error: `ConnectionRegistry.push` simply
returns False.
"""


class MessagingError(Exception):
    """Base class for messaging core failures."""


class InvalidCredential(MessagingError):
    """Bearer credential could not be verified."""


class InvalidFrame(MessagingError):
    """Inbound frame is malformed; nothing was persisted."""

    def __init__(self, detail: str, *, code: str = "invalid_frame"):
        super().__init__(detail)
        self.detail = detail
        self.code = code


class LedgerError(MessagingError):
    """Gem adjustment could not be committed."""


class InsufficientGems(LedgerError):
    def __init__(self, *, user_id: str, balance: int, cost: int):
        super().__init__(
            f"Insufficient gems for user {user_id}. Current: {balance}, Attempted: {cost}"
        )
        self.user_id = user_id
        self.balance = balance
        self.cost = cost


class MessageStoreError(MessagingError):
    """Message could not be persisted."""
