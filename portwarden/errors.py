"""Translate raw command failures into messages fit for end users.

Raw OS text stays in the ``error`` field of results; these helpers only
produce the friendly ``user_message`` and the elevation hint.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


PERMISSION_MARKERS = ("eacces", "eperm", "not permitted", "access is denied", "access denied", "permission denied")
MISSING_COMMAND_MARKERS = ("enoent", "command not found", "not recognized as an internal")
TIMEOUT_MARKERS = ("etimedout", "timed out", "timeout")
CONNECTION_MARKERS = ("econnrefused", "connection refused")
GONE_MARKERS = ("no such process", "not found", "esrch")

SCAN_FAILED_MESSAGE = "Unable to retrieve port information. Please check your system permissions."
KILL_FAILED_MESSAGE = "Failed to terminate process. Please try again."
ALREADY_TERMINATED_MESSAGE = "Process already terminated or does not exist."
INVALID_PID_MESSAGE = "Invalid PID provided"


@dataclass(frozen=True)
class FailureDescription:
    user_message: str
    needs_elevation: bool = False
    kind: str = "unknown"  # permission/missing/timeout/connection/gone/unknown


def _has_marker(text: str, markers) -> bool:
    return any(m in text for m in markers)


def permission_message(is_windows: bool) -> str:
    if is_windows:
        return "Permission denied. Try running as administrator."
    return "Permission denied. Try running with elevated privileges (sudo)."


def describe_scan_failure(error: Optional[str], is_windows: bool = False) -> FailureDescription:
    """Map a failed listing command to a user message."""
    text = (error or "").lower()
    if _has_marker(text, PERMISSION_MARKERS):
        return FailureDescription(permission_message(is_windows), needs_elevation=is_windows, kind="permission")
    if _has_marker(text, MISSING_COMMAND_MARKERS):
        return FailureDescription("Required command not found. Please check installation.", kind="missing")
    if _has_marker(text, TIMEOUT_MARKERS):
        return FailureDescription("Operation timed out. Please try again.", kind="timeout")
    if _has_marker(text, CONNECTION_MARKERS):
        return FailureDescription("Connection failed. Please check your system.", kind="connection")
    return FailureDescription(SCAN_FAILED_MESSAGE)


def describe_kill_failure(error: Optional[str], is_windows: bool = False) -> FailureDescription:
    """Map a failed kill command to a user message.

    Permission problems come first: taskkill reports "Access is denied"
    for processes that do exist.
    """
    text = (error or "").lower()
    if _has_marker(text, PERMISSION_MARKERS):
        return FailureDescription(permission_message(is_windows), needs_elevation=is_windows, kind="permission")
    if _has_marker(text, MISSING_COMMAND_MARKERS):
        return FailureDescription("Required command not found. Please check installation.", kind="missing")
    if _has_marker(text, GONE_MARKERS):
        return FailureDescription(ALREADY_TERMINATED_MESSAGE, kind="gone")
    if _has_marker(text, TIMEOUT_MARKERS):
        return FailureDescription("Operation timed out. Please try again.", kind="timeout")
    return FailureDescription(KILL_FAILED_MESSAGE)
