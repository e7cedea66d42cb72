from __future__ import annotations

import logging
from typing import List

from pydantic import ValidationError

from ..models import PortRecord
from .addresses import split_address


logger = logging.getLogger(__name__)


def parse_netstat_windows(output: str) -> List[PortRecord]:
    """Parse ``netstat -ano`` output into PortRecords.

    Only LISTENING rows are considered:

        TCP    0.0.0.0:3000    0.0.0.0:0    LISTENING    12345

    The local address gives the port and the last column the PID. Process
    names are not part of netstat output and stay "Unknown".
    """
    records: List[PortRecord] = []
    for line in (output or "").splitlines():
        parts = line.split()
        # Proto Local-Address Foreign-Address State PID
        if len(parts) < 5 or parts[3] != "LISTENING":
            continue
        address = split_address(parts[1])
        pid_text = parts[-1]
        if address is None or not pid_text.isdigit() or int(pid_text) <= 0:
            logger.debug("netstat parser skipped line: %r", line)
            continue
        host, port = address
        try:
            records.append(
                PortRecord(
                    port=port,
                    pid=int(pid_text),
                    protocol="udp" if parts[0].upper() == "UDP" else "tcp",
                    address=host,
                )
            )
        except ValidationError:
            continue
    return records


def parse_netstat_unix(output: str) -> List[PortRecord]:
    """Parse ``netstat -an`` output from Linux or BSD/macOS.

    Fallback path: netstat -an carries neither owner nor PID, so records come
    back with ``pid=0`` and an unknown process name.
    """
    records: List[PortRecord] = []
    seen: set[int] = set()
    for line in (output or "").splitlines():
        parts = line.split()
        # Proto Recv-Q Send-Q Local-Address Foreign-Address State
        if len(parts) < 6 or parts[5] != "LISTEN" or not parts[0].lower().startswith("tcp"):
            continue
        address = split_address(parts[3], allow_dot=True)
        if address is None:
            continue
        host, port = address
        if port in seen:
            continue
        seen.add(port)
        records.append(PortRecord(port=port, pid=0, address=host))
    return records


def filter_port_lines(output: str, port: int) -> str:
    """Keep netstat rows whose local address ends in ``:<port>``."""
    kept = []
    for line in (output or "").splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        address = split_address(parts[1])
        if address is not None and address[1] == port:
            kept.append(line)
    return "\n".join(kept)
