import asyncio
import json
from typing import Any, Dict, Optional, Union

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from logging_config import get_logger

logger = get_logger(__name__)

Frame = Union[str, bytes]

# Close codes that mean the client went away on purpose
NORMAL_CLOSE_CODES = (1000, 1001)


class TransportClosed(Exception):
    """The remote end closed the connection."""

    def __init__(self, code: Optional[int] = None, reason: str = ""):
        super().__init__(f"transport closed (code={code})")
        self.code = code
        self.reason = reason

    @property
    def expected(self) -> bool:
        return self.code is None or self.code in NORMAL_CLOSE_CODES


class WebSocketTransport:
    """Duplex document channel over a FastAPI WebSocket.

    Writes and close share a per-connection lock, so a close never lands in
    the middle of a write and nothing is written after it.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._write_lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def accept(self):
        await self.websocket.accept()

    async def receive(self) -> Frame:
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise TransportClosed(message.get("code"), message.get("reason") or "")
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    async def send(self, document: Dict[str, Any]):
        data = json.dumps(document)
        async with self._write_lock:
            if self._closed:
                return
            await self.websocket.send_text(data)

    async def close(self, code: int = 1000):
        async with self._write_lock:
            if self._closed:
                return
            self._closed = True
            if self.websocket.application_state == WebSocketState.DISCONNECTED:
                return
            try:
                await self.websocket.close(code=code)
            except Exception as e:
                # The client may already be gone
                logger.debug(f"Error closing WebSocket: {e}")
