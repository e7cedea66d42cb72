from __future__ import annotations

import logging
import os
import time
from typing import Optional

import psutil

from ..models import ProcessStats


logger = logging.getLogger(__name__)


def lifetime_cpu_percent(proc: psutil.Process) -> float:
    """Average CPU usage since the process started, like ``ps -o %cpu``.

    Needs no earlier sample, unlike ``Process.cpu_percent(interval=None)``
    which returns 0.0 on its first call.
    """
    times = proc.cpu_times()
    elapsed = max(time.time() - proc.create_time(), 1e-6)
    return (times.user + times.system) / elapsed * 100


def get_process_stats(pid: int) -> ProcessStats:
    """Best-effort CPU and memory usage for ``pid``; zeros on any failure."""
    if not isinstance(pid, int) or pid <= 0:
        return ProcessStats()
    try:
        proc = psutil.Process(pid)
        with proc.oneshot():
            cpu = lifetime_cpu_percent(proc)
            rss = proc.memory_info().rss
        return ProcessStats(cpu_percent=float(cpu or 0.0), memory_bytes=int(rss or 0))
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as e:
        # Process might have ended or permission denied
        logger.debug("Could not get stats for PID %s: %s", pid, e)
    except (OSError, ValueError) as e:
        logger.debug("Stats lookup for PID %s failed: %s", pid, e)
    return ProcessStats()


def get_process_name(pid: int) -> Optional[str]:
    """Name of the live process ``pid``, or None when it cannot be read."""
    try:
        return psutil.Process(pid).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess, OSError, ValueError):
        return None


def is_elevated() -> bool:
    if hasattr(os, "geteuid"):
        return os.geteuid() == 0
    try:
        import ctypes

        return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
    except (AttributeError, OSError):
        return False
