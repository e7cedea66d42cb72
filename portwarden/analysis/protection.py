from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from ..config import ProtectionPolicy
from ..models import ProtectionVerdict


_SEVERITY = {"none": 0, "warning": 1, "critical": 2}


def name_matches(process_name: Optional[str], entry: str) -> bool:
    """Case-insensitive membership test for one protected-name entry.

    A name matches when it equals or contains the entry, ends with
    ``/entry`` (path-qualified) or starts with ``entry.`` (``mysqld.exe``).
    Over-matching such as ``mypostgres-backup`` is accepted: a false
    positive costs a confirmation, a false negative can kill a database.
    """
    if not process_name or not entry:
        return False
    name = process_name.lower()
    entry = entry.lower()
    return (
        name == entry
        or entry in name
        or name.endswith("/" + entry)
        or name.startswith(entry + ".")
    )


def matches_any(process_name: Optional[str], entries: Iterable[str]) -> bool:
    return any(name_matches(process_name, e) for e in entries)


def _raise_level(current: str, new: str) -> str:
    return new if _SEVERITY[new] > _SEVERITY[current] else current


class ProtectionClassifier:
    """Classify a (process name, port) pair as killable, warn-worthy or forbidden.

    Each instance owns its protected-process set; ``add``/``remove`` never
    touch the policy it was built from or any other classifier.
    """

    def __init__(self, policy: Optional[ProtectionPolicy] = None):
        policy = policy or ProtectionPolicy()
        self._critical: List[str] = [p.lower() for p in policy.critical_processes]
        self._protected: List[str] = []
        self.add(*policy.protected_processes)
        self._databases = [p.lower() for p in policy.database_processes]
        self._infrastructure = [p.lower() for p in policy.infrastructure_processes]
        self._system = [p.lower() for p in policy.system_processes]
        self._critical_ports: Dict[int, str] = dict(policy.critical_ports)
        self._system_port_limit = policy.system_port_limit

    # -- protected set ---------------------------------------------------

    @property
    def protected_processes(self) -> List[str]:
        return list(self._protected)

    def set_protected(self, names: Iterable[str]) -> None:
        self._protected = []
        self.add(*names)

    def add(self, *names: str) -> None:
        for name in names:
            lower = name.strip().lower()
            if lower and lower not in self._protected:
                self._protected.append(lower)

    def remove(self, name: str) -> bool:
        lower = name.strip().lower()
        if lower in self._protected:
            self._protected.remove(lower)
            return True
        return False

    def is_protected(self, process_name: Optional[str]) -> bool:
        return matches_any(process_name, self._protected)

    def is_critical_process(self, process_name: Optional[str]) -> bool:
        return matches_any(process_name, self._critical)

    # -- ports -----------------------------------------------------------

    def critical_service(self, port: Optional[int]) -> Optional[str]:
        if port is None:
            return None
        return self._critical_ports.get(port)

    def is_system_port(self, port: Optional[int]) -> bool:
        return port is not None and 0 < port < self._system_port_limit

    def is_critical_port(self, port: Optional[int]) -> bool:
        return self.is_system_port(port) or self.critical_service(port) is not None

    # -- verdict ---------------------------------------------------------

    def service_category(self, process_name: Optional[str]) -> Optional[str]:
        if matches_any(process_name, self._databases):
            return "database"
        if matches_any(process_name, self._infrastructure):
            return "infrastructure"
        if matches_any(process_name, self._system):
            return "system"
        return None

    def classify(self, process_name: Optional[str], port: Optional[int] = None) -> ProtectionVerdict:
        """Apply every protection rule; the most severe level wins.

        1. critical system process -> critical, cannot be overridden
        2. protected service -> warning, with category-specific reasons
        3. port below the system limit -> warning
        4. well-known critical service port -> warning
        """
        level = "none"
        reasons: List[str] = []
        can_override = True

        if self.is_critical_process(process_name):
            level = "critical"
            can_override = False
            reasons.append("Core operating system process")
            reasons.append("Killing this will crash your system")

        if self.is_protected(process_name):
            level = _raise_level(level, "warning")
            category = self.service_category(process_name)
            if category == "database":
                reasons.append("Database service")
                reasons.append("May cause data corruption")
            elif category == "infrastructure":
                reasons.append("Critical service")
                reasons.append("Other services depend on this")
            elif category == "system":
                reasons.append("System service")
                reasons.append("Killing it could make your system unusable")
            else:
                reasons.append("Protected service")

        if self.is_system_port(port):
            level = _raise_level(level, "warning")
            reasons.append(f"System port ({port})")
            reasons.append("Requires elevated privileges")

        service = self.critical_service(port)
        if service:
            level = _raise_level(level, "warning")
            reasons.append(f"{service} service port")

        return ProtectionVerdict(level=level, reasons=reasons, can_override=can_override)
