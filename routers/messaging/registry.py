"""Process-wide map of user id -> live WebSocket channel.

One registry is created per app instance (see `main.create_app`) and handed to
the dispatcher and the WebSocket endpoint; nothing reaches it through module
globals.
"""

from __future__ import annotations

import asyncio
import logging
from threading import Lock
from typing import Any, Dict, List, Optional

from starlette.websockets import WebSocketState

from config import WS_PUSH_TIMEOUT_SECONDS
from core.logging import hash_user_id
from core.ports.channels import Channel

logger = logging.getLogger(__name__)


def is_writable(channel: Channel) -> bool:
    """True while both sides of the channel are still connected."""
    for attr in ("client_state", "application_state"):
        state = getattr(channel, attr, WebSocketState.CONNECTED)
        if state != WebSocketState.CONNECTED:
            return False
    return True


class ConnectionRegistry:
    def __init__(self, *, push_timeout_seconds: float = WS_PUSH_TIMEOUT_SECONDS):
        self._lock = Lock()
        self._channels: Dict[str, Channel] = {}
        self._push_timeout = float(push_timeout_seconds)

    def register(self, user_id: str, channel: Channel) -> Optional[Channel]:
        """Insert or replace the channel for `user_id`; returns the superseded one."""
        with self._lock:
            previous = self._channels.get(user_id)
            self._channels[user_id] = channel
        if previous is not None and previous is not channel:
            logger.info(f"Connection superseded: user={hash_user_id(user_id)}")
        return previous

    def unregister(self, user_id: str, channel: Optional[Channel] = None) -> bool:
        """
        Remove the entry for `user_id`. Removing an absent key is a no-op.

        When `channel` is given the entry is only removed if it is still that
        channel, so a superseded connection closing late never evicts the
        connection that replaced it.
        """
        with self._lock:
            current = self._channels.get(user_id)
            if current is None:
                return False
            if channel is not None and current is not channel:
                return False
            del self._channels[user_id]
        return True

    def lookup(self, user_id: str) -> Optional[Channel]:
        with self._lock:
            channel = self._channels.get(user_id)
        if channel is None or not is_writable(channel):
            return None
        return channel

    async def push(self, user_id: str, frame: Dict[str, Any]) -> bool:
        """
        Send `frame` to the user's live channel.

        Returns False (never raises) when the user is offline, the channel is
        closed, the send fails, or it does not finish within the push timeout.
        """
        channel = self.lookup(user_id)
        if channel is None:
            return False
        return await self.send(channel, frame, user_id=user_id)

    async def send(
        self, channel: Channel, frame: Dict[str, Any], *, user_id: Optional[str] = None
    ) -> bool:
        """Send on a specific channel with the same timeout/failure rules as `push`."""
        if not is_writable(channel):
            return False
        label = hash_user_id(user_id) if user_id else "-"
        try:
            await asyncio.wait_for(channel.send_json(frame), timeout=self._push_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Push timed out after {self._push_timeout}s: user={label}")
            return False
        except Exception as e:
            logger.info(f"Push failed: user={label}, error={e}")
            if user_id:
                self.unregister(user_id, channel)
            return False

    def online_user_ids(self) -> List[str]:
        with self._lock:
            return list(self._channels)

    def __contains__(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._channels

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)
