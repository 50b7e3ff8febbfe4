import time
from typing import Callable

from logging_config import get_logger
from peer import Peer
from registry import RoomRegistry
from schemas.messages import DisconnectMessage, PongMessage, RelayRequest, parse_inbound
from transport import Frame

logger = get_logger(__name__)


class MessageRouter:
    """Handles one inbound frame at a time for a connection.

    Frames that are not text, not a JSON object, or lack a string `type` are
    dropped and the connection stays open.
    """

    def __init__(self, registry: RoomRegistry, clock: Callable[[], float] = time.monotonic):
        self.registry = registry
        self.clock = clock

    async def route(self, peer: Peer, frame: Frame) -> bool:
        """Returns False when the connection should end."""
        if not isinstance(frame, str):
            logger.debug(f"Ignoring non-text frame from peer {peer.id}")
            return True

        message = parse_inbound(frame)
        if message is None:
            logger.debug(f"Ignoring unrecognized frame from peer {peer.id}")
            return True

        if isinstance(message, DisconnectMessage):
            logger.info(f"Peer {peer.id} requested disconnect")
            return False

        if isinstance(message, PongMessage):
            peer.last_heartbeat = self.clock()
            return True

        if isinstance(message, RelayRequest):
            await self.registry.relay(peer, message.to, message.payload)
        return True
