"""
Main client implementation
Handles connection with the relay, local commands, sending and receiving text and graceful shutdown
"""

import asyncio
import sys
import logging
import argparse
from typing import Optional, Tuple

from chowk.commands import CommandKind, change_nick, help_text, match_command
from chowk.config import DEFAULT_NICKNAME, DEFAULT_PORT, READ_SIZE
from chowk.logs import configure_logging

logger = logging.getLogger(__name__)

class Client():
    """
    Async client for the relay

    Features:
    - Local /nick, /help and /quit handling
    - /auth is passed through to the server
    - Plain lines are sent prefixed with the nickname
    """
    def __init__(self, host: str, port: int) -> None:
        """
        Initialize client
        Args:
            host: ip of the server to connect to
            port: port of the server to connect to
        """
        self.host = host
        self.port = port
        self.nick = DEFAULT_NICKNAME
        self.writer: Optional[asyncio.StreamWriter] = None
        self.reader: Optional[asyncio.StreamReader] = None

    async def connect_to_server(self) -> Tuple[Optional[asyncio.StreamReader], Optional[asyncio.StreamWriter]]:
        """Handle the connection to the relay"""
        try:
            reader, writer = await asyncio.open_connection(
                self.host,
                self.port
            )
            logger.info(f"Connected to {self.host}:{self.port}")
            return reader, writer
        except ConnectionRefusedError:
            logger.error(f"ERROR:Server at {self.host}:{self.port} refused connection")
            print("Is the server running?")
            print("Is the port correct?")
            return None, None
        except asyncio.TimeoutError:
            logger.error(f"ERROR: Connection to {self.host}:{self.port} timed out")
            return None, None
        except OSError as e:
            logger.error(f"ERROR: OS Error: {e}")
            return None, None

    async def send_message(self, message: str) -> bool:
        """handle the sending of text to the server"""
        successful = False
        try:
            self.writer.write(message.encode())
            await self.writer.drain()
            successful = True
        except ConnectionResetError as e:
            logger.error(f"Connection reset: {e}")
        except BrokenPipeError as e:
            logger.error(f"Broken pipe: {e}")
        except ConnectionAbortedError as e:
            logger.error(f"Connection aborted: {e}")
        except OSError as e:
            logger.error(f"OS Error: {e}")
        return successful

    def prepare_message(self, line: str) -> Tuple[Optional[str], bool]:
        """
        Turn one line of user input into what goes on the wire.

        Returns (text to send or None, whether the client should stop).
        Local commands print their output and send nothing.
        """
        line = line.strip()
        if not line:
            return None, False
        matched = match_command(line)
        if matched is None:
            return f"{self.nick}: {line}", False
        command, argument = matched
        if command.kind is CommandKind.AUTH:
            return line, False
        if command.kind is CommandKind.QUIT:
            return None, True
        if command.kind is CommandKind.HELP:
            print(help_text(), end="")
            return None, False
        nickname, reply = change_nick(argument, self.nick)
        if nickname is not None:
            self.nick = nickname
        print(reply.strip())
        return None, False

    async def receive_message(self):
        """Handle the receiving of text from the server"""
        try:
            while True:
                data = await self.reader.read(READ_SIZE)
                if not data:
                    logger.info("Server disconnected")
                    break
                message = data.decode(errors="replace").rstrip()
                print(f"\r{message}")
                print("> ", end="", flush=True)
        except (ConnectionResetError, ConnectionAbortedError, BrokenPipeError) as e:
            logger.error(f"Connection ERROR: {e}")
        except asyncio.CancelledError:
            logger.info("Stopping receiver...")
            raise

    async def send_user_input(self):
        """Read user input and send to the server"""
        try:
            while True:
                print("> ", end="", flush=True)
                line = await asyncio.get_running_loop().run_in_executor(
                    None, sys.stdin.readline
                )
                if not line:
                    break
                message, stop = self.prepare_message(line)
                if stop:
                    logger.info("Client wants to close down...")
                    break
                if message is None:
                    continue
                if not await self.send_message(message):
                    break
        except asyncio.CancelledError:
            logger.info("Stopping sender...")
            raise

    async def run(self):
        """Main client loop"""
        self.reader, self.writer = await self.connect_to_server()

        if self.reader is None and self.writer is None:
            logger.error("Failed to connect to the server")
            return

        print("You are offline. Use /auth <token> to authenticate.")
        receiver_task = asyncio.create_task(self.receive_message())
        sender_task = asyncio.create_task(self.send_user_input())

        try:
            done, pending = await asyncio.wait(
                {receiver_task, sender_task},
                return_when=asyncio.FIRST_COMPLETED
            )

            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        finally:
            if self.writer and not self.writer.is_closing():
                self.writer.close()
                await self.writer.wait_closed()
            logger.info("Disconnected from server")


async def main():
    parser = argparse.ArgumentParser(description="Chowk Client")
    parser.add_argument('--host', default='127.0.0.1', help='Server host')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT, help='Server port')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    args = parser.parse_args()
    configure_logging(args.debug)

    client = Client(host=args.host, port=args.port)
    await client.run()


def cli():
    """Console script entry point"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Client Stopped by user")


if __name__ == "__main__":
    cli()
