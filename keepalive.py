import asyncio
import time
from typing import Callable, Set

from constants import KEEPALIVE_DEAD_FACTOR, KEEPALIVE_INTERVAL
from logging_config import get_logger
from peer import Peer
from registry import RoomRegistry
from schemas.messages import PingMessage

logger = get_logger(__name__)


class KeepaliveSupervisor:
    """Per-peer liveness timer.

    Each peer owns at most one pending timer. A firing either evicts the peer
    or pings it and arms exactly one successor. Firings run under the registry
    lock, so one that races with `leave` finds the peer gone and stops.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        interval: float = KEEPALIVE_INTERVAL,
        dead_factor: float = KEEPALIVE_DEAD_FACTOR,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.interval = interval
        self.dead_factor = dead_factor
        self.clock = clock
        self._firings: Set[asyncio.Task] = set()

    @property
    def dead_after(self) -> float:
        return self.interval * self.dead_factor

    def start(self, peer: Peer):
        peer.cancel_keepalive()
        self._schedule(peer, 0)

    def _schedule(self, peer: Peer, delay: float):
        loop = asyncio.get_running_loop()
        peer.keepalive_handle = loop.call_later(delay, self._fire, peer)

    def _fire(self, peer: Peer):
        peer.keepalive_handle = None
        task = asyncio.ensure_future(self.check(peer))
        self._firings.add(task)
        task.add_done_callback(self._firing_done)

    def _firing_done(self, task: asyncio.Task):
        self._firings.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Keepalive check failed: {error}", exc_info=error)

    async def check(self, peer: Peer):
        async with self.registry.lock:
            if not self.registry.contains(peer):
                return

            peer.cancel_keepalive()

            silence = self.clock() - peer.last_heartbeat
            if silence > self.dead_after:
                logger.info(f"Peer {peer.id} missed heartbeats for {silence:.1f}s, evicting")
                self.registry.leave_locked(peer.id, peer.locality)
                return

            peer.send(PingMessage())
            self._schedule(peer, self.interval)

    async def close(self):
        firings = list(self._firings)
        for task in firings:
            task.cancel()
        if firings:
            await asyncio.gather(*firings, return_exceptions=True)
