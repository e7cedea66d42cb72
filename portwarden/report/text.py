from __future__ import annotations

from io import StringIO
from typing import List

from ..models import KillResult, PortChanges, PortRecord, ProtectionVerdict, ScanResponse
from ..utils.time import fmt_clock
from ..utils.units import format_bytes


_LEVEL_LABEL = {"none": "", "warning": "protected", "critical": "CRITICAL"}


def render_port_table(records: List[PortRecord]) -> str:
    """Fixed-width table of listening ports, one row per record."""
    if not records:
        return "No listening ports found.\n"
    buf = StringIO()
    buf.write(f"{'PORT':>6}  {'PID':>7}  {'PROCESS':<20} {'USER':<12} {'CPU%':>6} {'MEMORY':>9}  PROTECTION\n")
    for r in records:
        label = _LEVEL_LABEL.get(r.protection.level, r.protection.level)
        if r.is_critical and not label:
            label = "critical port"
        buf.write(
            f"{r.port:>6}  {r.pid or '-':>7}  {r.process_name[:20]:<20} {r.user[:12]:<12} "
            f"{r.cpu_percent:>6.1f} {format_bytes(r.memory_bytes):>9}  {label}\n"
        )
    return buf.getvalue()


def render_scan(response: ScanResponse) -> str:
    buf = StringIO()
    buf.write(render_port_table(response.data))
    buf.write(
        f"\n{response.stats.total} port(s), {response.stats.critical} critical, "
        f"{response.stats.protected} protected"
    )
    if response.scanned_at:
        buf.write(f" (scanned {fmt_clock(response.scanned_at)})")
    buf.write("\n")
    if response.limited and response.limited_message:
        buf.write(f"Note: {response.limited_message}\n")
    return buf.getvalue()


def render_verdict(verdict: ProtectionVerdict) -> str:
    buf = StringIO()
    buf.write(f"Protection: {verdict.level}")
    if verdict.is_protected:
        buf.write(" (override allowed)" if verdict.can_override else " (cannot be overridden)")
    buf.write("\n")
    for reason in verdict.reasons:
        buf.write(f"  - {reason}\n")
    return buf.getvalue()


def render_changes(changes: PortChanges) -> str:
    if changes.is_empty:
        return "No changes.\n"
    buf = StringIO()
    for r in changes.added:
        buf.write(f"+ {r.port}/{r.protocol} {r.process_name} (PID {r.pid})\n")
    for r in changes.removed:
        buf.write(f"- {r.port}/{r.protocol} {r.process_name} (PID {r.pid})\n")
    for m in changes.modified:
        r = m.record
        buf.write(
            f"~ {r.port}/{r.protocol} {r.process_name} (PID {r.pid}): "
            f"cpu {m.previous_cpu_percent:.1f}% -> {r.cpu_percent:.1f}%, "
            f"memory {format_bytes(m.previous_memory_bytes)} -> {format_bytes(r.memory_bytes)}\n"
        )
    return buf.getvalue()


def render_kill_result(result: KillResult, show_details: bool = False) -> str:
    if result.success:
        return f"{result.message}\n"
    lines = [result.user_message or result.error or "Failed to terminate process."]
    if show_details and result.user_message and result.error and result.error != result.user_message:
        lines.append(f"Details: {result.error}")
    if result.suggestion:
        lines.append(result.suggestion)
    return "\n".join(lines) + "\n"
