"""
Basic unit tests for the Chowk client.
"""
import pytest
from unittest.mock import Mock

from chowk.client import Client
from chowk.client_connection import ClientConnection


def test_client_format_addr():
    """Test address formatting"""
    writer = Mock()
    client = ClientConnection(writer, ('192.168.1.100', 5000))
    assert client.format_addr() == "192.168.1.100:5000"
    assert client.ip == '192.168.1.100'


def test_client_prepare_message():
    """Plain lines carry the nickname, /auth goes out as typed"""
    client = Client('localhost', 6969)

    assert client.prepare_message("hello\n") == ("anon: hello", False)
    assert client.prepare_message("/auth ABCD") == ("/auth ABCD", False)
    assert client.prepare_message("/quit") == (None, True)

    # nothing to send
    assert client.prepare_message("") == (None, False)
    assert client.prepare_message("   \n") == (None, False)


def test_client_local_commands(capsys):
    client = Client('localhost', 6969)

    assert client.prepare_message("/nick Ferris") == (None, False)
    assert client.nick == "Ferris"
    assert client.prepare_message("hi") == ("Ferris: hi", False)

    assert client.prepare_message("/nick Ferris") == (None, False)
    assert client.nick == "Ferris"

    assert client.prepare_message("/help") == (None, False)
    out = capsys.readouterr().out
    assert "Nickname changed from anon to Ferris" in out
    assert "Nickname cannot be empty or same." in out
    assert "/auth - Authenticate using a token" in out
