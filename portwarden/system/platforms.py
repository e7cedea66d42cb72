"""Per-platform command construction and output parsing.

One strategy per platform family, chosen once by :func:`detect_platform`.
Callers never branch on the operating system themselves.
"""
from __future__ import annotations

import logging
import sys
from typing import List, Optional

from ..models import PortRecord
from ..parsing.lsof import parse_lsof
from ..parsing.netstat import filter_port_lines, parse_netstat_unix, parse_netstat_windows
from ..parsing.tasklist import parse_tasklist_csv
from .runner import CommandResult, CommandRunner


logger = logging.getLogger(__name__)


class PlatformStrategy:
    name: str = "generic"
    is_windows: bool = False
    # Executables the listing commands need on PATH
    required_commands: tuple[str, ...] = ()

    def list_command(self) -> List[str]:
        raise NotImplementedError

    def port_command(self, port: int) -> List[str]:
        raise NotImplementedError

    def kill_command(self, pid: int) -> List[str]:
        raise NotImplementedError

    def parse(self, output: str) -> List[PortRecord]:
        raise NotImplementedError

    def parse_port(self, output: str, port: int) -> List[PortRecord]:
        return [r for r in self.parse(output) if r.port == port]

    def fallback_command(self) -> Optional[List[str]]:
        return None

    def parse_fallback(self, output: str) -> List[PortRecord]:
        return []

    def is_empty_result(self, result: CommandResult) -> bool:
        """True when a failed listing command only means 'nothing to list'."""
        return False

    def resolve_names(self, records: List[PortRecord], runner: CommandRunner) -> List[PortRecord]:
        return records


class UnixPlatform(PlatformStrategy):
    """macOS, Linux and BSDs: lsof for discovery, kill for termination."""

    required_commands = ("lsof",)

    def __init__(self, name: str = "darwin"):
        self.name = name

    def list_command(self) -> List[str]:
        return ["lsof", "-i", "-P", "-n"]

    def port_command(self, port: int) -> List[str]:
        return ["lsof", "-i", f":{port}", "-P", "-n"]

    def kill_command(self, pid: int) -> List[str]:
        return ["kill", "-9", str(pid)]

    def parse(self, output: str) -> List[PortRecord]:
        return parse_lsof(output)

    def fallback_command(self) -> Optional[List[str]]:
        return ["netstat", "-an"]

    def parse_fallback(self, output: str) -> List[PortRecord]:
        return parse_netstat_unix(output)

    def is_empty_result(self, result: CommandResult) -> bool:
        # lsof exits 1 when no matching sockets exist
        return result.returncode == 1 and not result.stdout.strip() and not result.stderr.strip()


class WindowsPlatform(PlatformStrategy):
    """Windows: netstat for discovery, tasklist for names, taskkill for termination."""

    name = "win32"
    is_windows = True
    required_commands = ("netstat", "tasklist")

    def list_command(self) -> List[str]:
        return ["netstat", "-ano"]

    def port_command(self, port: int) -> List[str]:
        return ["netstat", "-ano"]

    def kill_command(self, pid: int) -> List[str]:
        return ["taskkill", "/F", "/PID", str(pid)]

    def parse(self, output: str) -> List[PortRecord]:
        return parse_netstat_windows(output)

    def parse_port(self, output: str, port: int) -> List[PortRecord]:
        return parse_netstat_windows(filter_port_lines(output, port))

    def resolve_names(self, records: List[PortRecord], runner: CommandRunner) -> List[PortRecord]:
        if not records:
            return records
        if len(records) == 1:
            cmd = ["tasklist", "/FI", f"PID eq {records[0].pid}", "/FO", "CSV", "/NH"]
        else:
            cmd = ["tasklist", "/FO", "CSV", "/NH"]
        result = runner.run(cmd)
        if not result.ok:
            logger.warning("Process name lookup failed: %s", result.error)
            return records
        names = parse_tasklist_csv(result.stdout)
        return [
            r.model_copy(update={"process_name": names[r.pid]}) if r.pid in names else r
            for r in records
        ]


def detect_platform(system: Optional[str] = None) -> PlatformStrategy:
    """Pick the strategy for ``system`` (defaults to ``sys.platform``)."""
    system = system or sys.platform
    if system.startswith("win"):
        return WindowsPlatform()
    return UnixPlatform(system)
