"""
Session authority.

The single consumer of the event channel. It owns the client registry and
the ban registry, and decides what happens to every inbound frame:
rate limiting and strikes, the authentication gate, command dispatch and
broadcast. Events are handled one at a time, to completion, so none of the
state here needs a lock.
"""

import hmac
import logging
import time
from typing import Dict

from chowk.client_connection import ClientConnection
from chowk.commands import Command, CommandKind, change_nick, help_text, match_command
from chowk.config import RelayConfig
from chowk.events import Address, Connected, Disconnected, EventChannel, Inbound
from chowk.logs import Sensitive
from chowk.session import BanRegistry, ClientSession

logger = logging.getLogger(__name__)


class ServerShutdown(Exception):
    """A client asked the whole server to stop (/quit with quit_stops_server)."""


class SessionAuthority:
    """
    Serialized owner of all session state.

    Features:
    - Ban check on connect, lazy expiry of old bans
    - Per-client rate limit with strikes leading to an IP ban
    - Token authentication before a client can broadcast
    - /auth, /quit, /help and /nick commands
    """

    def __init__(self, token: str, config: RelayConfig = None, clock=time.monotonic):
        """
        Args:
            token: shared secret clients must present
            config: policy settings, defaults when omitted
            clock: monotonic time source in seconds
        """
        self.token = token
        self.config = config or RelayConfig()
        self.clock = clock
        self.clients: Dict[Address, ClientSession] = {}
        self.bans = BanRegistry(self.config.ban_limit)

    async def run(self, channel: EventChannel):
        """Handle events in arrival order until the channel is closed."""
        while True:
            event = await channel.recv()
            if event is None:
                logger.critical("Event channel closed, session authority stopping")
                return
            await self.handle(event)

    async def handle(self, event):
        if isinstance(event, Inbound):
            await self.on_inbound(event)
        elif isinstance(event, Connected):
            await self.on_connected(event.connection)
        elif isinstance(event, Disconnected):
            await self.on_disconnected(event.address)
        else:
            logger.error(f"Unknown event: {event!r}")

    async def on_connected(self, connection: ClientConnection):
        addr = connection.addr
        if addr in self.clients:
            # readers never reuse an address; refuse the newcomer
            logger.error(f"Duplicate connection for {Sensitive(connection.format_addr())}")
            await connection.shutdown()
            return

        now = self.clock()
        remaining = self.bans.remaining(connection.ip, now)
        if remaining is not None:
            logger.info(f"Client {Sensitive(connection.format_addr())} tried to connect but is banned for {remaining:.2f}s")
            await connection.send(f"You are banned, {remaining:.2f} secs left\n")
            await connection.shutdown()
            return

        self.clients[addr] = ClientSession(address=addr, connection=connection, last_message_at=now)
        logger.info(f"Client {Sensitive(connection.format_addr())} connected")

    async def on_disconnected(self, address: Address):
        session = self.clients.pop(address, None)
        if session is not None:
            logger.info(f"Client {Sensitive(format_address(address))} disconnected")
            await session.connection.shutdown()

    def close_all(self):
        """Close every live session. Only for use once run() has returned."""
        for session in list(self.clients.values()):
            session.connection.writer.close()
        self.clients.clear()

    async def on_inbound(self, event: Inbound):
        session = self.clients.get(event.address)
        if session is None:
            logger.debug(f"Dropping frame from unknown client {Sensitive(format_address(event.address))}")
            return

        now = self.clock()
        if now - session.last_message_at < self.config.message_rate:
            await self.strike(session, now, "rate limit")
            return
        session.last_message_at = now

        try:
            text = event.data.decode("utf-8")
        except UnicodeDecodeError:
            await self.strike(session, now, "invalid UTF-8")
            return

        if not session.authenticated:
            await self.authenticate(session, text, event.is_command)
            return

        matched = match_command(text) if event.is_command else None
        if matched is None:
            await self.broadcast(session, event.data)
        else:
            command, argument = matched
            await self.run_command(session, command, argument)

    async def authenticate(self, session: ClientSession, text: str, is_command: bool):
        """
        Gate for unauthenticated clients.

        Accepts "/auth <token>" or the bare token. Known commands other than
        /auth are refused; anything else counts as a wrong token.
        """
        supplied = text
        if is_command:
            matched = match_command(text)
            if matched is not None:
                command, argument = matched
                if command.kind is not CommandKind.AUTH:
                    await session.connection.send("Authenticate first: /auth <token>\n")
                    return
                supplied = argument

        if hmac.compare_digest(supplied.encode(), self.token.encode()):
            session.authenticated = True
            logger.info(f"{Sensitive(format_address(session.address))} authorized!")
            await session.connection.send("Welcome!\n")
        else:
            logger.info(f"{Sensitive(format_address(session.address))} sent an invalid token")
            await session.connection.send("Invalid token!\n")
            await self.drop(session)

    async def run_command(self, session: ClientSession, command: Command, argument: str):
        logger.debug(f"{Sensitive(format_address(session.address))} ran {command.name}")
        if command.kind is CommandKind.AUTH:
            await session.connection.send("Already authorized.\n")
        elif command.kind is CommandKind.QUIT:
            if self.config.quit_stops_server:
                logger.warning(f"{Sensitive(format_address(session.address))} requested server shutdown")
                raise ServerShutdown(format_address(session.address))
            await session.connection.send("Bye!\n")
            await self.drop(session)
        elif command.kind is CommandKind.HELP:
            await session.connection.send(help_text())
        elif command.kind is CommandKind.NICK:
            nickname, reply = change_nick(argument, session.nickname)
            if nickname is not None:
                session.nickname = nickname
            await session.connection.send(reply)

    async def broadcast(self, sender: ClientSession, data: bytes):
        """Send data verbatim to every other authenticated client."""
        logger.info(f"Client {Sensitive(format_address(sender.address))} sent {Sensitive(repr(data))}")
        recipients = [
            session for address, session in self.clients.items()
            if address != sender.address and session.authenticated
        ]
        for recipient in recipients:
            await recipient.connection.send(data)

    async def strike(self, session: ClientSession, now: float, reason: str):
        """Count a violation and ban the client once it hits the limit."""
        session.strike_count += 1
        logger.info(f"Strike {session.strike_count}/{self.config.strike_limit} for {Sensitive(format_address(session.address))}: {reason}")
        if session.strike_count >= self.config.strike_limit:
            await self.ban(session, now)

    async def ban(self, session: ClientSession, now: float):
        """Ban the session's IP and drop every live session from that IP."""
        self.bans.ban(session.ip, now)
        logger.info(f"Client {Sensitive(format_address(session.address))} got banned")
        offenders = [s for s in self.clients.values() if s.ip == session.ip]
        for offender in offenders:
            self.clients.pop(offender.address, None)
            await offender.connection.send("You are banned!\n")
            await offender.connection.shutdown()

    async def drop(self, session: ClientSession):
        """Remove a session and close its socket."""
        self.clients.pop(session.address, None)
        await session.connection.shutdown()


def format_address(address: Address) -> str:
    return f"{address[0]}:{address[1]}"
