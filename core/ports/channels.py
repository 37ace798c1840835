from typing import Any, Protocol


class Channel(Protocol):
    """Duplex channel the registry can push frames to (a Starlette WebSocket in production)."""

    async def send_json(self, data: Any, mode: str = "text") -> None: ...
