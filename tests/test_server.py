"""
Unit tests for the Chowk relay server
"""
import pytest
import asyncio
from unittest.mock import Mock, AsyncMock

from chowk.client_connection import ClientConnection
from chowk.config import RelayConfig
from chowk.events import ChannelClosed, Connected, Disconnected, EventChannel, Inbound
from chowk.server import Server, strip_control, build_parser
from conftest import Writer


def drain(channel):
    events = []
    while not channel.queue.empty():
        events.append(channel.queue.get_nowait())
    return events


def make_writer(peername=("10.0.0.1", 5000)):
    writer = Writer()
    writer.get_extra_info = Mock(return_value=peername)
    return writer


@pytest.mark.fast
@pytest.mark.asyncio
async def test_server_starts():
    """Test that server can start."""
    server = Server(RelayConfig(host="127.0.0.1", port=0), token="ABCD")
    server_task = asyncio.create_task(server.run_server())
    await asyncio.wait_for(server.ready.wait(), timeout=5.0)
    assert server.bound_port
    server_task.cancel()
    try:
        await server_task
    except asyncio.CancelledError:
        pass
    assert server.channel.closed


@pytest.mark.fast
def test_generated_token():
    server = Server()
    assert len(server.token) == 32
    assert server.token == server.token.upper()
    int(server.token, 16)


@pytest.mark.fast
def test_strip_control():
    assert strip_control(b"hi\r\n") == b"hi"
    assert strip_control(b"\x00a\tb\x1fc ") == b"abc "
    assert strip_control(b"\r\n") == b""
    # non-ASCII bytes are kept for the authority to judge
    assert strip_control(b"\xff\xfe") == b"\xff\xfe"


@pytest.mark.fast
@pytest.mark.asyncio
async def test_client_handler_emits_events():
    """Reads become Connected, Inbound and Disconnected events in order"""
    server = Server(token="ABCD")
    reader = Mock()
    reader.read = AsyncMock(side_effect=[b"hello\r\n", b"/nick x\n", b"\r\n", b""])
    writer = make_writer()

    await server.client_handler(reader, writer)

    events = drain(server.channel)
    assert isinstance(events[0], Connected)
    assert events[0].connection.writer is writer
    assert events[0].connection.addr == ("10.0.0.1", 5000)
    assert events[1:] == [
        Inbound(("10.0.0.1", 5000), b"hello", False),
        Inbound(("10.0.0.1", 5000), b"/nick x", True),
        Disconnected(("10.0.0.1", 5000)),
    ]
    reader.read.assert_called_with(server.config.read_size)
    # the socket belongs to the authority once registered
    assert not writer.closed


@pytest.mark.fast
@pytest.mark.asyncio
async def test_client_handler_read_error_disconnects():
    server = Server(token="ABCD")
    reader = Mock()
    reader.read = AsyncMock(side_effect=[b"hey", ConnectionResetError("reset")])

    await server.client_handler(reader, make_writer())

    events = drain(server.channel)
    assert events[-1] == Disconnected(("10.0.0.1", 5000))


@pytest.mark.fast
@pytest.mark.asyncio
async def test_client_handler_without_peer_address():
    """No address means no session and no events"""
    server = Server(token="ABCD")
    reader = Mock()
    reader.read = AsyncMock()
    writer = make_writer(peername=None)

    await server.client_handler(reader, writer)

    assert drain(server.channel) == []
    assert writer.closed
    reader.read.assert_not_called()


@pytest.mark.fast
@pytest.mark.asyncio
async def test_client_handler_stops_when_channel_closed():
    server = Server(token="ABCD")
    server.channel.close()
    reader = Mock()
    reader.read = AsyncMock()
    writer = make_writer()

    await server.client_handler(reader, writer)

    assert writer.closed
    reader.read.assert_not_called()


@pytest.mark.fast
@pytest.mark.asyncio
async def test_channel_fifo_and_close():
    channel = EventChannel()
    channel.send(Disconnected(("a", 1)))
    channel.send(Disconnected(("b", 2)))
    channel.close()
    with pytest.raises(ChannelClosed):
        channel.send(Disconnected(("c", 3)))
    assert await channel.recv() == Disconnected(("a", 1))
    assert await channel.recv() == Disconnected(("b", 2))
    assert await channel.recv() is None
    assert await channel.recv() is None


@pytest.mark.fast
@pytest.mark.asyncio
async def test_channel_close_wakes_consumer():
    channel = EventChannel()
    waiter = asyncio.create_task(channel.recv())
    await asyncio.sleep(0)
    channel.close()
    assert await asyncio.wait_for(waiter, timeout=1.0) is None


@pytest.mark.fast
@pytest.mark.asyncio
async def test_connection_send():
    """Text is encoded, bytes go out untouched"""
    writer = Writer()
    writer.drain = AsyncMock()
    connection = ClientConnection(writer, ('127.0.0.1', 1678))
    assert await connection.send("Welcome!\n")
    assert await connection.send(b"\xc3\xa9")
    assert writer.data == "Welcome!\n".encode() + b"\xc3\xa9"
    assert writer.drain.await_count == 2


@pytest.mark.fast
@pytest.mark.asyncio
async def test_connection_send_failure_is_reported():
    writer = Writer()
    writer.write = Mock(side_effect=BrokenPipeError("gone"))
    connection = ClientConnection(writer, ('127.0.0.1', 1678))
    assert await connection.send("hi") is False


@pytest.mark.fast
@pytest.mark.asyncio
async def test_connection_send_times_out_on_slow_receiver():
    writer = Writer()

    async def stuck():
        await asyncio.sleep(10)
    writer.drain = stuck
    connection = ClientConnection(writer, ('127.0.0.1', 1678), write_timeout=0.05)
    assert await connection.send("hi") is False


@pytest.mark.fast
@pytest.mark.asyncio
async def test_connection_shutdown_closes_once():
    writer = Writer()
    writer.close = Mock(side_effect=writer.close)
    connection = ClientConnection(writer, ('127.0.0.1', 1678))
    await connection.shutdown()
    await connection.shutdown()
    writer.close.assert_called_once()
    assert await connection.send("late") is False


@pytest.mark.fast
def test_parser_defaults():
    args = build_parser().parse_args([])
    config = RelayConfig.from_args(args)
    assert config.port == 6969
    assert config.ban_limit == 600.0
    assert config.message_rate == 1.0
    assert config.strike_limit == 10
    assert config.quit_stops_server is False


@pytest.mark.fast
def test_parser_overrides():
    args = build_parser().parse_args(["--port", "7000", "--strike-limit", "3", "--quit-stops-server", "--safe-mode"])
    config = RelayConfig.from_args(args)
    assert config.port == 7000
    assert config.strike_limit == 3
    assert config.quit_stops_server
    assert config.safe_mode
