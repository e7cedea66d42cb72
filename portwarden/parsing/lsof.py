from __future__ import annotations

import logging
from typing import List

from pydantic import ValidationError

from ..models import PortRecord
from .addresses import split_address


logger = logging.getLogger(__name__)

# COMMAND PID USER FD TYPE DEVICE SIZE/OFF NODE NAME
_MIN_COLUMNS = 9


def parse_lsof_line(line: str) -> PortRecord | None:
    """Parse one ``lsof -i -P -n`` line; None when the line does not fit the layout."""
    parts = line.split()
    if len(parts) < _MIN_COLUMNS:
        return None
    command, pid_text, user = parts[0], parts[1], parts[2]
    if not pid_text.isdigit():
        return None

    if "(LISTEN)" not in parts[_MIN_COLUMNS - 1:]:
        return None
    # Drop the trailing "(LISTEN)" state so the address is the last token
    tail = [p for p in parts[_MIN_COLUMNS - 1:] if not (p.startswith("(") and p.endswith(")"))]
    if not tail:
        return None
    if "->" in tail[-1]:
        return None
    address = split_address(tail[-1])
    if address is None:
        return None
    host, port = address

    node = parts[7].lower()
    protocol = "udp" if node == "udp" else "tcp"
    try:
        return PortRecord(
            port=port,
            pid=int(pid_text),
            process_name=command.replace("\\x20", " "),
            user=user,
            protocol=protocol,
            address=host,
        )
    except ValidationError:
        return None


def parse_lsof(output: str) -> List[PortRecord]:
    """Parse lsof output into PortRecords, keeping LISTEN sockets only.

    Lines that do not match the column layout are skipped.
    """
    records: List[PortRecord] = []
    skipped = 0
    for line in (output or "").splitlines():
        record = parse_lsof_line(line)
        if record is None or record.pid <= 0:
            if "LISTEN" in line:
                skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.debug("lsof parser skipped %d line(s)", skipped)
    return records
