from __future__ import annotations

from typing import Dict, Iterable, Tuple

from ..models import ModifiedPort, PortChanges, PortRecord


Key = Tuple[int, int]  # (port, pid)


def _index(records: Iterable[PortRecord]) -> Dict[Key, PortRecord]:
    return {r.key: r for r in records}


def analyze_changes(current: Iterable[PortRecord], previous: Iterable[PortRecord]) -> PortChanges:
    """Diff two scans keyed by (port, pid).

    - only in current -> added
    - only in previous -> removed
    - in both with different CPU or memory -> modified, keeping the old values
    """
    current_map = _index(current)
    previous_map = _index(previous)
    changes = PortChanges()

    for key, record in current_map.items():
        prev = previous_map.get(key)
        if prev is None:
            changes.added.append(record)
        elif prev.cpu_percent != record.cpu_percent or prev.memory_bytes != record.memory_bytes:
            changes.modified.append(
                ModifiedPort(
                    record=record,
                    previous_cpu_percent=prev.cpu_percent,
                    previous_memory_bytes=prev.memory_bytes,
                )
            )

    for key, record in previous_map.items():
        if key not in current_map:
            changes.removed.append(record)

    return changes
