import asyncio
from typing import Any, Dict, List, Optional

from logging_config import get_logger
from peer import Peer
from schemas.messages import PeerInfo, PeerJoinedMessage, PeerLeftMessage, PeersMessage

logger = get_logger(__name__)


class RoomRegistry:
    """Rooms of peers keyed by locality.

    Format: {locality: {peer_id: Peer}}. A room exists only while it has at
    least one member. Every operation runs under `lock` and only queues
    documents on peers' outboxes while holding it, so a slow client never
    stalls other rooms. Join and leave queue their notifications inside the
    critical section, so a snapshot and the matching broadcast always agree on
    membership.
    """

    def __init__(self):
        self.rooms: Dict[str, Dict[str, Peer]] = {}
        self.lock = asyncio.Lock()

    @property
    def room_count(self) -> int:
        return len(self.rooms)

    @property
    def peer_count(self) -> int:
        return sum(len(room) for room in self.rooms.values())

    def get(self, peer_id: str, locality: str) -> Optional[Peer]:
        return self.rooms.get(locality, {}).get(peer_id)

    def contains(self, peer: Peer) -> bool:
        return self.get(peer.id, peer.locality) is peer

    def peers(self) -> List[Peer]:
        return [peer for room in self.rooms.values() for peer in room.values()]

    async def snapshot_peers(self, locality: str) -> List[PeerInfo]:
        async with self.lock:
            return self._snapshot_locked(locality)

    def _snapshot_locked(self, locality: str) -> List[PeerInfo]:
        return [peer.info() for peer in self.rooms.get(locality, {}).values()]

    async def join(self, peer: Peer):
        async with self.lock:
            if any(peer.id in room for room in self.rooms.values()):
                logger.warning(f"Peer {peer.id} is already registered, ignoring join")
                return

            room = self.rooms.setdefault(peer.locality, {})
            existing = list(room.values())
            snapshot = self._snapshot_locked(peer.locality)
            try:
                joined = PeerJoinedMessage(peer=peer.info())
                for other in existing:
                    other.send(joined)
                peer.send(PeersMessage(peers=snapshot))
            finally:
                # Whoever was told about the peer must later hear it leave
                room[peer.id] = peer
            logger.info(f"Peer {peer.id} joined room {peer.locality} (members: {len(room)})")

    async def leave(self, peer_id: str, locality: str) -> bool:
        async with self.lock:
            return self.leave_locked(peer_id, locality)

    def leave_locked(self, peer_id: str, locality: str) -> bool:
        """Remove a peer. The caller must hold `lock`. Unknown peers are a no-op."""
        room = self.rooms.get(locality)
        if room is None or peer_id not in room:
            return False

        peer = room.pop(peer_id)
        peer.close()

        if not room:
            del self.rooms[locality]
            logger.info(f"Peer {peer_id} left room {locality}, room is now empty and removed")
            return True

        logger.info(f"Peer {peer_id} left room {locality} (members: {len(room)})")
        left = PeerLeftMessage(peer_id=peer_id)
        for other in room.values():
            other.send(left)
        return True

    async def relay(self, sender: Peer, to_peer_id: str, payload: Dict[str, Any]) -> bool:
        """Forward an opaque payload to a peer in the sender's own room.

        The recipient may have left a moment ago; that is dropped silently.
        """
        message = {key: value for key, value in payload.items() if key != "to"}
        message["sender"] = sender.id

        async with self.lock:
            recipient = self.rooms.get(sender.locality, {}).get(to_peer_id)
            if recipient is None:
                logger.debug(f"Dropping relay from {sender.id}: recipient {to_peer_id} not in room {sender.locality}")
                return False
            queued = recipient.send(message)

        logger.debug(f"Relayed {message.get('type')} from {sender.id} to {to_peer_id}")
        return queued
