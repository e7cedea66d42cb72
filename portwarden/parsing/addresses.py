from __future__ import annotations

import re
from typing import Optional, Tuple


_COLON_PORT = re.compile(r"^(?P<host>.*):(?P<port>\d+)$")
# BSD netstat prints "*.8080" or "127.0.0.1.5432"
_DOT_PORT = re.compile(r"^(?P<host>.*)\.(?P<port>\d+)$")


def split_address(token: str, allow_dot: bool = False) -> Optional[Tuple[str, int]]:
    """Split ``host:port`` into its parts; None when no valid port is present."""
    match = _COLON_PORT.match(token)
    if match is None and allow_dot:
        match = _DOT_PORT.match(token)
    if match is None:
        return None
    port = int(match.group("port"))
    if not 1 <= port <= 65535:
        return None
    return match.group("host"), port
