"""
Session state owned by the session authority.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from chowk.client_connection import ClientConnection
from chowk.config import DEFAULT_NICKNAME
from chowk.events import Address


@dataclass
class ClientSession:
    """
    Per-connection state, kept only in memory.

    strike_count only ever grows; the session is dropped once it reaches
    the strike limit.
    """
    address: Address
    connection: ClientConnection
    last_message_at: float
    strike_count: int = 0
    authenticated: bool = False
    nickname: str = DEFAULT_NICKNAME

    @property
    def ip(self) -> str:
        return self.address[0]


class BanRegistry:
    """
    IP -> time the ban started.

    Keyed by IP, not by (IP, port), so every connection from a banned host
    is refused. Expired entries are discarded lazily when that IP connects
    again.
    """

    def __init__(self, ban_limit: float):
        self.ban_limit = ban_limit
        self._banned_at: Dict[str, float] = {}

    def remaining(self, ip: str, now: float) -> Optional[float]:
        """
        Seconds of ban left for ip, or None if it is not banned.

        An expired record is dropped as a side effect.
        """
        banned_at = self._banned_at.pop(ip, None)
        if banned_at is None:
            return None
        elapsed = now - banned_at
        if elapsed >= self.ban_limit:
            return None
        self._banned_at[ip] = banned_at
        return self.ban_limit - elapsed

    def ban(self, ip: str, now: float) -> None:
        self._banned_at[ip] = now

    def banned_at(self, ip: str) -> Optional[float]:
        return self._banned_at.get(ip)

    def __contains__(self, ip):
        return ip in self._banned_at

    def __len__(self):
        return len(self._banned_at)
