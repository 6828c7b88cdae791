"""
Shared fixtures for the Chowk tests.
"""
import pytest

from chowk.authority import SessionAuthority
from chowk.client_connection import ClientConnection
from chowk.config import RelayConfig
from chowk.events import Connected, Inbound

TOKEN = "ABCD"


def pytest_configure(config):
    config.addinivalue_line("markers", "fast: quick unit tests")
    config.addinivalue_line("markers", "slow: tests that open real sockets")


class Writer:
    """In-memory stand-in for asyncio.StreamWriter."""
    def __init__(self):
        self.data = b""
        self.closed = False

    def write(self, data):
        self.data += data

    async def drain(self):
        pass

    def is_closing(self):
        return self.closed

    def close(self):
        self.closed = True

    async def wait_closed(self):
        pass

    def text(self):
        return self.data.decode()


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return RelayConfig(message_rate=1.0, strike_limit=3, ban_limit=600.0)


@pytest.fixture
def authority(clock, config):
    return SessionAuthority(TOKEN, config, clock=clock)


@pytest.fixture
def connect(authority):
    """Register a new in-memory client with the authority."""
    async def _connect(host="10.0.0.1", port=5000):
        connection = ClientConnection(Writer(), (host, port))
        await authority.handle(Connected(connection))
        return connection
    return _connect


@pytest.fixture
def send(authority):
    """Deliver one frame from a connection, classified like the reader does."""
    async def _send(connection, data):
        if isinstance(data, str):
            data = data.encode()
        await authority.handle(Inbound(connection.addr, data, data.startswith(b"/")))
    return _send


@pytest.fixture
def login(authority, clock, connect, send):
    """Connect a client and authenticate it once the rate window has passed."""
    async def _login(host="10.0.0.1", port=5000):
        connection = await connect(host, port)
        clock.advance(1.0)
        await send(connection, TOKEN)
        assert authority.clients[connection.addr].authenticated
        connection.writer.data = b""
        return connection
    return _login
