"""
Events flowing from connection readers to the session authority.

Readers are the producers, the authority is the only consumer. The channel
keeps arrival order, so events from one connection are seen in the order
its reader produced them.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Tuple, Union

Address = Tuple[str, int]


class ChannelClosed(Exception):
    """Raised when sending on a channel whose consumer is gone."""


@dataclass(frozen=True)
class Connected:
    """A new socket was accepted. Carries the write sink for it."""
    connection: "ClientConnection"


@dataclass(frozen=True)
class Disconnected:
    """The reader saw end-of-stream or a read error."""
    address: Address


@dataclass(frozen=True)
class Inbound:
    """One frame read from a client, control bytes already stripped."""
    address: Address
    data: bytes
    is_command: bool = False


Event = Union[Connected, Disconnected, Inbound]


class EventChannel:
    """
    Unbounded FIFO shared by all readers and the authority.

    Once closed, send() raises ChannelClosed and recv() drains what is left
    before returning None.
    """

    def __init__(self):
        self.queue = asyncio.Queue()
        self.closed = False

    def send(self, event: Event) -> None:
        if self.closed:
            raise ChannelClosed("session authority is not receiving events")
        self.queue.put_nowait(event)

    async def recv(self) -> Optional[Event]:
        if self.closed and self.queue.empty():
            return None
        item = await self.queue.get()
        self.queue.task_done()
        return item

    def close(self) -> None:
        """Stop accepting events and wake up a waiting consumer."""
        if self.closed:
            return
        self.closed = True
        # sentinel so a consumer blocked in recv() returns
        self.queue.put_nowait(None)
