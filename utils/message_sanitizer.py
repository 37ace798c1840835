"""
Chat content sanitization.
Strips HTML tags and control characters from user-supplied message text.
"""

import logging

import bleach

from config import MESSAGE_SANITIZE_ENABLED

logger = logging.getLogger(__name__)

_ALLOWED_WHITESPACE = ("\n", "\r", "\t")


def sanitize_message(message) -> str:
    """
    Sanitize a chat message.

    Args:
        message: Raw message text from the client (non-strings yield "")

    Returns:
        Cleaned text; empty when nothing printable remains
    """
    if not message or not isinstance(message, str):
        return ""

    cleaned = message.strip()

    if not MESSAGE_SANITIZE_ENABLED:
        return cleaned

    # tags=[] with strip=True drops every tag instead of escaping it
    sanitized = bleach.clean(cleaned, tags=[], strip=True)
    sanitized = "".join(
        char for char in sanitized if char.isprintable() or char in _ALLOWED_WHITESPACE
    )
    return sanitized.strip()
