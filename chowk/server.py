"""
Relay server.

Accepts connections, runs one reader per client and forwards everything it
reads to the session authority as events.
"""

import argparse
import asyncio
import logging
import sys

from chowk import config as defaults
from chowk.authority import ServerShutdown, SessionAuthority
from chowk.client_connection import ClientConnection
from chowk.config import RelayConfig, generate_token
from chowk.events import ChannelClosed, Connected, Disconnected, EventChannel, Inbound
from chowk.logs import Sensitive, configure_logging

logger = logging.getLogger(__name__)

READ_ERRORS = (ConnectionResetError, ConnectionAbortedError, ConnectionRefusedError, OSError)


class AuthorityStopped(Exception):
    """The session authority exited; the server cannot go on."""


def strip_control(data: bytes) -> bytes:
    """Drop control bytes (values below 32)."""
    return bytes(b for b in data if b >= 32)


class Server:
    """
    Plain-text relay server.

    Features:
    - One reader task per client, one session authority for all of them
    - Frames are single reads with control bytes removed
    - Commands are recognised by a leading '/'
    """

    def __init__(self, config: RelayConfig = None, token: str = None):
        """
        Initialize server.

        Args:
            config: server settings
            token: shared secret, generated when omitted
        """
        self.config = config or RelayConfig()
        self.token = token or generate_token()
        self.channel = EventChannel()
        self.authority = SessionAuthority(self.token, self.config)
        self.bound_port = None
        self.ready = asyncio.Event()

    async def client_handler(self, reader, writer):
        """Read frames from a single client until it goes away."""
        addr = writer.get_extra_info("peername")
        if not addr:
            logger.error("ERROR: could not get peer address")
            writer.close()
            return
        connection = ClientConnection(writer, addr, self.config.write_timeout)
        address = connection.addr
        try:
            self.channel.send(Connected(connection))
        except ChannelClosed as e:
            logger.error(f"ERROR: could not register {Sensitive(connection.format_addr())}: {e}")
            writer.close()
            return

        while True:
            try:
                data = await reader.read(self.config.read_size)
            except READ_ERRORS as e:
                logger.error(f"ERROR: {Sensitive(connection.format_addr())} has connection error: {Sensitive(e)}")
                data = b''
            if not data:
                logger.debug(f"{Sensitive(connection.format_addr())} disconnected (EOF)")
                try:
                    self.channel.send(Disconnected(address))
                except ChannelClosed as e:
                    logger.error(f"ERROR: could not report disconnect of {Sensitive(connection.format_addr())}: {e}")
                    writer.close()
                break
            frame = strip_control(data)
            if not frame:
                continue
            try:
                self.channel.send(Inbound(address, frame, frame.startswith(b"/")))
            except ChannelClosed as e:
                logger.error(f"ERROR: could not forward message from {Sensitive(connection.format_addr())}: {e}")
                writer.close()
                break

    async def run_server(self):
        """
        Serve until the session authority stops.

        Raises:
            ServerShutdown: a client ran /quit with quit_stops_server set
            AuthorityStopped: the authority exited on its own
        """
        server = await asyncio.start_server(
            self.client_handler,
            self.config.host,
            self.config.port
        )
        addr = server.sockets[0].getsockname()
        self.bound_port = addr[1]
        logger.info(f"Server running on {Sensitive(addr)}")
        print(f"Token: {self.token}", flush=True)

        authority_task = asyncio.create_task(self.authority.run(self.channel))
        async with server:
            serve_task = asyncio.create_task(server.serve_forever())
            self.ready.set()
            try:
                await asyncio.wait(
                    {authority_task, serve_task},
                    return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                self.channel.close()
                for task in (serve_task, authority_task):
                    if not task.done():
                        task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass
                    except ServerShutdown:
                        pass
                self.authority.close_all()

        if authority_task.cancelled():
            raise AuthorityStopped("session authority was cancelled")
        error = authority_task.exception()
        if error is not None:
            raise error
        raise AuthorityStopped("session authority exited")


def build_parser():
    parser = argparse.ArgumentParser(description="Chowk relay server")
    parser.add_argument('--host', default=defaults.DEFAULT_HOST, help='Interface to listen on')
    parser.add_argument('--port', type=int, default=defaults.DEFAULT_PORT, help='Port to listen on')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--safe-mode', action='store_true', help='Redact addresses and messages in logs')
    parser.add_argument('--ban-limit', type=float, default=defaults.BAN_LIMIT, help='Ban duration in seconds')
    parser.add_argument('--message-rate', type=float, default=defaults.MESSAGE_RATE,
                        help='Minimum seconds between messages from one client')
    parser.add_argument('--strike-limit', type=int, default=defaults.STRIKE_LIMIT,
                        help='Violations before a client is banned')
    parser.add_argument('--read-size', type=int, default=defaults.READ_SIZE, help='Maximum bytes per frame')
    parser.add_argument('--quit-stops-server', action='store_true',
                        help='Let /quit stop the whole server instead of disconnecting the client')
    return parser


def main():
    """Entry point for server"""
    args = build_parser().parse_args()
    configure_logging(args.debug, args.safe_mode)
    server = Server(RelayConfig.from_args(args))
    try:
        asyncio.run(server.run_server())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except ServerShutdown as e:
        logger.info(f"Server stopped by /quit from {Sensitive(e)}")
    except AuthorityStopped as e:
        logger.critical(f"Server failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
