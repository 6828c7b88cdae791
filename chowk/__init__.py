"""
Chowk relay package.

Main exports:
- Server: accept loop and connection readers
- SessionAuthority: owner of all session and ban state
- ClientConnection: write side of a client socket
"""

from chowk.authority import SessionAuthority
from chowk.client_connection import ClientConnection
from chowk.server import Server

__version__ = "1.0.0"
__all__ = ['Server', 'SessionAuthority', 'ClientConnection']
