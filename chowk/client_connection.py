"""
Client connection write side.

The reader task keeps the StreamReader; this wrapper around the StreamWriter
is handed to the session authority, which is the only code that writes to
the client.
"""

import asyncio
import logging

from chowk.logs import Sensitive

logger = logging.getLogger(__name__)

WRITE_ERRORS = (ConnectionResetError, BrokenPipeError, ConnectionAbortedError, OSError, asyncio.TimeoutError)


class ClientConnection:
    """
    Write-only handle to a single connected client.

    Manages:
    - Direct writes with a bounded drain
    - Best-effort shutdown of the socket
    """

    def __init__(self, writer, addr, write_timeout=2.0):
        """
        Initialize client connection.

        Args:
            writer: asyncio StreamWriter for this client
            addr: Client address tuple (host, port)
            write_timeout: seconds to wait for a slow receiver to drain
        """
        self.writer = writer
        self.addr = (addr[0], addr[1])
        self.write_timeout = write_timeout

    @property
    def ip(self):
        return self.addr[0]

    def format_addr(self):
        """Format address as IP:Port string."""
        return f"{self.addr[0]}:{self.addr[1]}"

    async def send(self, data) -> bool:
        """
        Write text or raw bytes to the client.

        Failures are logged and reported through the return value, never
        raised, so one dead socket cannot abort a broadcast.
        """
        if isinstance(data, str):
            data = data.encode()
        if self.writer.is_closing():
            logger.debug(f"Skipping write to closed connection {Sensitive(self.format_addr())}")
            return False
        try:
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=self.write_timeout)
            return True
        except WRITE_ERRORS as e:
            logger.error(f"Error@{Sensitive(self.format_addr())} in send(): {Sensitive(e)}")
            return False

    async def shutdown(self):
        """Close the socket in both directions. Errors are logged only."""
        if self.writer.is_closing():
            return
        try:
            self.writer.close()
            await asyncio.wait_for(self.writer.wait_closed(), timeout=self.write_timeout)
        except WRITE_ERRORS as e:
            logger.error(f"Error@{Sensitive(self.format_addr())} in shutdown(): {Sensitive(e)}")
