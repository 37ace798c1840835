from dataclasses import dataclass
from typing import Optional
import base64
import json
import logging
import time

import jwt

from config import ACCESS_TOKEN_TTL_SECONDS, JWT_ALGORITHM, JWT_LEEWAY_SECONDS, JWT_SECRET
from core.errors import InvalidCredential
from models import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: Role


def decode_jwt_payload(token: str) -> dict:
    """Decode JWT payload without verification for debugging purposes."""
    try:
        parts = token.split('.')
        if len(parts) != 3:
            return {}

        # Add padding if needed
        payload = parts[1]
        padding = len(payload) % 4
        if padding:
            payload += '=' * (4 - padding)

        decoded_bytes = base64.urlsafe_b64decode(payload)
        return json.loads(decoded_bytes.decode('utf-8'))
    except Exception as e:
        logger.debug(f"Failed to decode JWT payload: {e}")
        return {}


def create_access_token(user_id: str, role, expires_in: Optional[int] = None) -> str:
    """
    Mint a signed access token carrying the user id and role.

    Args:
        user_id: User primary key
        role: Role enum member or its string value
        expires_in: Lifetime in seconds (defaults to ACCESS_TOKEN_TTL_SECONDS)

    Returns:
        str: Encoded JWT
    """
    now = int(time.time())
    payload = {
        "id": str(user_id),
        "role": Role(role).value,
        "iat": now,
        "exp": now + (expires_in if expires_in is not None else ACCESS_TOKEN_TTL_SECONDS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: Optional[str]) -> Identity:
    """
    Validate a bearer credential and extract the caller's identity.

    Args:
        token (str): Encoded JWT

    Returns:
        Identity: user id and role claimed by the token

    Raises:
        InvalidCredential: If the token is missing, malformed, expired, badly
            signed, or lacks a usable id/role claim
    """
    if not token:
        raise InvalidCredential("Token required")

    try:
        claims = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            leeway=JWT_LEEWAY_SECONDS,
        )
    except jwt.ExpiredSignatureError:
        logger.info("JWT validation failed: token expired")
        raise InvalidCredential("Token expired")
    except jwt.InvalidTokenError as e:
        logger.info(f"JWT validation failed: {e}")
        logger.debug(f"Rejected JWT payload (unverified): {decode_jwt_payload(token)}")
        raise InvalidCredential("Invalid token")

    user_id = claims.get("id") or claims.get("sub")
    if not user_id:
        raise InvalidCredential("Invalid token: missing user ID")

    try:
        role = Role(claims.get("role"))
    except ValueError:
        raise InvalidCredential("Invalid token: unknown role")

    return Identity(user_id=str(user_id), role=role)
