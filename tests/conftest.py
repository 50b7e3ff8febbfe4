import asyncio
import json

import pytest

from identity import Identity
from peer import Peer
from schemas.messages import PeerName
from transport import TransportClosed

_CLOSED = object()


class FakeTransport:
    """In-memory stand-in for a WebSocket: frames fed by the test, documents recorded."""

    def __init__(self):
        self.sent = []
        self.accepted = False
        self.close_calls = 0
        self.close_code = None
        self.close_reason = ""
        self._inbox = asyncio.Queue()

    @property
    def closed(self):
        return self.close_calls > 0

    async def accept(self):
        self.accepted = True

    async def receive(self):
        item = await self._inbox.get()
        if item is _CLOSED:
            raise TransportClosed(self.close_code, self.close_reason)
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, document):
        if self.closed:
            raise RuntimeError("send on closed transport")
        self.sent.append(document)

    async def close(self, code=1000):
        self.close_calls += 1
        if self.close_calls == 1:
            self.close_code = code
            self._inbox.put_nowait(_CLOSED)

    def feed(self, frame):
        self._inbox.put_nowait(frame)

    def feed_json(self, document):
        self.feed(json.dumps(document))

    def disconnect(self, code=1000, reason=""):
        self.close_code = code
        self.close_reason = reason
        self._inbox.put_nowait(_CLOSED)

    def fail(self, error):
        self._inbox.put_nowait(error)

    def of_type(self, message_type):
        return [document for document in self.sent if document.get("type") == message_type]


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_peer(locality="10.0.0.5", peer_id=None, display_name="Red Dog", rtc_supported=True, last_heartbeat=None, transport=None):
    name = PeerName(os="Linux", browser="Firefox", type="desktop", device_name="Linux Firefox", display_name=display_name)
    return Peer(
        transport or FakeTransport(),
        locality,
        peer_id=peer_id,
        name=name,
        rtc_supported=rtc_supported,
        last_heartbeat=last_heartbeat,
    )


def fixed_identity(user_agent, peer_id):
    name = PeerName(os="Linux", browser="Firefox", type="desktop", device_name="Linux Firefox", display_name=f"Peer {peer_id[:4]}")
    return Identity(name=name, rtc_supported=True)


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def run():
    return asyncio.run


class StalledTransport(FakeTransport):
    """A client that stopped reading: every write hangs forever."""

    def __init__(self):
        super().__init__()
        self.attempted = []
        self._never = asyncio.Event()

    async def send(self, document):
        self.attempted.append(document)
        await self._never.wait()


async def settle(*peers):
    """Let queued documents reach the transports and pending closes finish."""
    for peer in peers:
        await peer.flush()
        await peer.wait_closed()
