import asyncio
import enum
import time
import uuid
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel

from constants import PEER_OUTBOX_SIZE
from logging_config import get_logger
from schemas.messages import PeerInfo, PeerName, to_document

logger = get_logger(__name__)


def generate_peer_id() -> str:
    return str(uuid.uuid4())


class PeerState(str, enum.Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


class Peer:
    """One connected client.

    `locality` and `name` are fixed at connect time. `last_heartbeat` is written
    by the message router and read by the keepalive supervisor.

    Outbound documents go through a queue drained by a single writer task, so
    `send` never waits on the network and is safe to call under the registry
    lock. `close()` stops the writer and closes the transport in the background;
    `wait_closed()` waits for that to finish.
    """

    def __init__(
        self,
        transport,
        locality: str,
        peer_id: Optional[str] = None,
        name: Optional[PeerName] = None,
        rtc_supported: bool = False,
        last_heartbeat: Optional[float] = None,
        outbox_size: int = PEER_OUTBOX_SIZE,
    ):
        self.id = peer_id or generate_peer_id()
        self.locality = locality
        self.transport = transport
        self.name = name or PeerName()
        self.rtc_supported = rtc_supported
        self.last_heartbeat = time.monotonic() if last_heartbeat is None else last_heartbeat
        self.keepalive_handle: Optional[asyncio.TimerHandle] = None
        self.state = PeerState.CONNECTING
        self._closed = False
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size)
        self._writer: Optional[asyncio.Task] = None
        self._closing: Optional[asyncio.Task] = None

    def __repr__(self):
        return f"<Peer {self.id} locality={self.locality} state={self.state.value}>"

    @property
    def closed(self) -> bool:
        return self._closed

    def info(self) -> PeerInfo:
        return PeerInfo(id=self.id, name=self.name, rtc_supported=self.rtc_supported)

    def send(self, message: Union[BaseModel, Dict[str, Any]]) -> bool:
        """Queue a document for delivery. Returns False if it was dropped."""
        if self._closed:
            return False
        document = to_document(message)
        if self._writer is None:
            self._writer = asyncio.ensure_future(self._write_loop())
        try:
            self._outbox.put_nowait(document)
        except asyncio.QueueFull:
            logger.warning(f"Outbox full for peer {self.id}, dropping {document.get('type')} message")
            return False
        return True

    async def _write_loop(self):
        while True:
            document = await self._outbox.get()
            try:
                await self.transport.send(document)
            except Exception as e:
                # A broken connection is reaped by the peer's own receive loop
                logger.warning(f"Send error to peer {self.id}: {e}")
            finally:
                self._outbox.task_done()

    async def flush(self):
        """Wait until every queued document has been handed to the transport."""
        if self._closed:
            return
        await self._outbox.join()

    def cancel_keepalive(self):
        if self.keepalive_handle is not None:
            self.keepalive_handle.cancel()
            self.keepalive_handle = None

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.state = PeerState.CLOSED
        self.cancel_keepalive()
        writer, self._writer = self._writer, None
        if writer is not None:
            writer.cancel()
        self._closing = asyncio.ensure_future(self._close_transport(writer))

    async def _close_transport(self, writer: Optional[asyncio.Task]):
        if writer is not None:
            await asyncio.gather(writer, return_exceptions=True)
        try:
            await self.transport.close()
        except Exception as e:
            logger.debug(f"Error closing transport for peer {self.id}: {e}")

    async def wait_closed(self):
        if self._closing is not None:
            await asyncio.shield(self._closing)
