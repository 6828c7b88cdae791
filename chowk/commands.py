"""
Chat commands.

The command set is fixed. A frame names a command when it starts with the
command's name; the first entry in table order wins.
"""

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

from chowk.config import NICK_LIMIT


class CommandKind(enum.Enum):
    AUTH = "auth"
    QUIT = "quit"
    HELP = "help"
    NICK = "nick"


@dataclass(frozen=True)
class Command:
    name: str
    description: str
    kind: CommandKind


COMMANDS = (
    Command("/auth", "Authenticate using a token", CommandKind.AUTH),
    Command("/quit", "Quit", CommandKind.QUIT),
    Command("/help", "Print this help", CommandKind.HELP),
    Command("/nick", "Change your nickname", CommandKind.NICK),
)


def match_command(text: str) -> Optional[Tuple[Command, str]]:
    """
    Find the command named by text.

    Returns the command and its argument (the rest of the text with leading
    whitespace removed), or None when no command matches.
    """
    for command in COMMANDS:
        if text.startswith(command.name):
            return command, text[len(command.name):].lstrip()
    return None


def help_text() -> str:
    """Usage listing for every command, one per line."""
    lines = ["Usage:\r\n"]
    for command in COMMANDS:
        lines.append(f"{command.name} - {command.description}\r\n")
    return "".join(lines)


def change_nick(argument: str, current: str) -> Tuple[Optional[str], str]:
    """
    Validate a /nick request.

    Args:
        argument: text after the command name
        current: the nickname in use

    Returns:
        (new nickname or None if rejected, reply for the requester)
    """
    candidate = argument.strip()
    if len(argument) > NICK_LIMIT:
        candidate = argument[:NICK_LIMIT].strip()
    if not candidate or candidate == current:
        return None, "Nickname cannot be empty or same.\r\n"
    return candidate, f"Nickname changed from {current} to {candidate}\r\n"
