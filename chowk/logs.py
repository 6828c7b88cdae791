"""
Logging setup shared by the server and the client.
"""

import logging

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_safe_mode = False


class Sensitive:
    """
    Wraps a value that should not reach the logs in safe mode.

    Formats as the wrapped value normally, or as [REDACTED] once
    configure_logging() enabled safe mode.
    """

    def __init__(self, value):
        self.value = value

    def __str__(self):
        if _safe_mode:
            return "[REDACTED]"
        return str(self.value)

    def __format__(self, spec):
        return format(str(self), spec)


def configure_logging(debug: bool = False, safe_mode: bool = False) -> None:
    """Configure the root logger once for an entry point."""
    global _safe_mode
    _safe_mode = safe_mode
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT
    )
