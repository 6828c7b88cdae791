"""
Relay configuration.

Holds the policy constants the session authority depends on and the
startup options parsed from the command line.
"""

import secrets
from dataclasses import dataclass

# seconds an IP stays banned after reaching the strike limit
BAN_LIMIT = 10 * 60.0
# minimum seconds between two frames from the same client
MESSAGE_RATE = 1.0
STRIKE_LIMIT = 10

NICK_LIMIT = 16
DEFAULT_NICKNAME = "anon"
READ_SIZE = 1024
WRITE_TIMEOUT = 2.0

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 6969


@dataclass
class RelayConfig:
    """
    Server-wide settings, read-only once the server is running.

    Attributes:
        host: interface to listen on
        port: port to listen on
        ban_limit: ban duration in seconds
        message_rate: minimum interval between frames in seconds
        strike_limit: violations before a client is banned
        read_size: maximum bytes taken by one read (one frame)
        write_timeout: bound on a single blocking write to a client
        quit_stops_server: make /quit stop the whole server instead of
            disconnecting only the requesting client
        safe_mode: redact addresses and payloads in logs
    """
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    ban_limit: float = BAN_LIMIT
    message_rate: float = MESSAGE_RATE
    strike_limit: int = STRIKE_LIMIT
    read_size: int = READ_SIZE
    write_timeout: float = WRITE_TIMEOUT
    quit_stops_server: bool = False
    safe_mode: bool = False

    @classmethod
    def from_args(cls, args) -> "RelayConfig":
        """Build a config from parsed argparse arguments."""
        return cls(
            host=args.host,
            port=args.port,
            ban_limit=args.ban_limit,
            message_rate=args.message_rate,
            strike_limit=args.strike_limit,
            read_size=args.read_size,
            quit_stops_server=args.quit_stops_server,
            safe_mode=args.safe_mode,
        )


def generate_token() -> str:
    """16 random bytes as uppercase hex."""
    return secrets.token_hex(16).upper()
