import asyncio
from typing import Callable, Set

from constants import SHUTDOWN_DRAIN_TIMEOUT
from identity import Identity, resolve_identity
from keepalive import KeepaliveSupervisor
from logging_config import get_logger
from message_router import MessageRouter
from peer import Peer, PeerState, generate_peer_id
from registry import RoomRegistry
from schemas.messages import DisplayName, DisplayNameMessage
from transport import TransportClosed

logger = get_logger(__name__)


class ConnectionCoordinator:
    """Runs each connection from accept to leave and drains them on shutdown."""

    def __init__(
        self,
        registry: RoomRegistry,
        supervisor: KeepaliveSupervisor,
        router: MessageRouter,
        identity_producer: Callable[[str, str], Identity] = resolve_identity,
        drain_timeout: float = SHUTDOWN_DRAIN_TIMEOUT,
    ):
        self.registry = registry
        self.supervisor = supervisor
        self.router = router
        self.identity_producer = identity_producer
        self.drain_timeout = drain_timeout
        self._shutdown = asyncio.Event()
        self._active: Set[Peer] = set()
        self._drained = asyncio.Event()
        self._drained.set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def shutting_down(self) -> bool:
        return self._shutdown.is_set()

    async def handle(self, transport, locality: str, user_agent: str = ""):
        if self.shutting_down:
            logger.info(f"Refusing connection from {locality}: server is shutting down")
            await transport.close(code=1001)
            return

        try:
            await transport.accept()
            peer_id = generate_peer_id()
            identity = self.identity_producer(user_agent, peer_id)
            peer = Peer(
                transport,
                locality,
                peer_id=peer_id,
                name=identity.name,
                rtc_supported=identity.rtc_supported,
                last_heartbeat=self.supervisor.clock(),
            )
        except Exception:
            await transport.close(code=1011)
            raise
        logger.info(f"Connection accepted for peer {peer.id} ({peer.name.device_name}) from {locality}")

        self._active.add(peer)
        self._drained.clear()
        try:
            await self.registry.join(peer)
            peer.state = PeerState.ACTIVE
            peer.send(DisplayNameMessage(
                message=DisplayName(
                    display_name=peer.name.display_name,
                    device_name=peer.name.device_name,
                )
            ))
            self.supervisor.start(peer)
            await self._receive_loop(peer)
        finally:
            try:
                await self.registry.leave(peer.id, peer.locality)
                # Never joined (or join was refused): the transport is still ours to close
                peer.close()
                await peer.wait_closed()
            finally:
                self._active.discard(peer)
                if not self._active:
                    self._drained.set()
                logger.info(f"Connection closed for peer {peer.id}")

    async def _receive_loop(self, peer: Peer):
        message_count = 0
        while not self._shutdown.is_set():
            try:
                frame = await peer.transport.receive()
            except TransportClosed as e:
                if e.expected:
                    logger.info(f"Peer {peer.id} disconnected (code={e.code}, reason={e.reason!r})")
                else:
                    logger.warning(f"Peer {peer.id} connection closed abnormally (code={e.code}, reason={e.reason!r})")
                return
            except Exception as e:
                if peer.closed:
                    # Evicted while waiting for a frame
                    return
                logger.error(f"Read error for peer {peer.id}: {e}", exc_info=True)
                return

            message_count += 1
            logger.debug(f"Received frame #{message_count} from peer {peer.id}")
            if not await self.router.route(peer, frame):
                return

    async def shutdown(self):
        if self._shutdown.is_set():
            return
        self._shutdown.set()
        logger.info(f"Shutting down, draining {self.active_count} connection(s)")

        if not await self._wait_drained():
            remaining = list(self._active)
            logger.warning(f"{len(remaining)} connection(s) still open after {self.drain_timeout}s, closing them")
            for peer in remaining:
                await self.registry.leave(peer.id, peer.locality)
            if not await self._wait_drained():
                logger.error(f"{self.active_count} connection(s) did not finish draining")

        await self.supervisor.close()
        logger.info("All connections drained")

    async def _wait_drained(self) -> bool:
        try:
            await asyncio.wait_for(self._drained.wait(), timeout=self.drain_timeout)
            return True
        except asyncio.TimeoutError:
            return False
