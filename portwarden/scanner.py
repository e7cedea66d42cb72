from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .analysis.changes import analyze_changes
from .analysis.protection import ProtectionClassifier
from .config import ScanSettings
from .errors import describe_scan_failure
from .models import (
    DiscoveryResult,
    PortChanges,
    PortInfoResponse,
    PortRecord,
    ProcessStats,
    ScanResponse,
    ScanStats,
    SystemCheck,
)
from .system.platforms import PlatformStrategy, detect_platform
from .system.process import get_process_stats, is_elevated
from .system.runner import CommandRunner, SubprocessRunner
from .utils.time import now_utc


logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Showing ports from netstat; process names and PIDs are unavailable."

StatsProvider = Callable[[int], ProcessStats]


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    delay: float = 1.0


def run_with_retry(
    operation: Callable[[], DiscoveryResult],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> DiscoveryResult:
    """Run ``operation`` until it succeeds or ``policy.attempts`` is exhausted.

    Waits ``policy.delay`` seconds between attempts. Returns the first
    successful result, else the last failure; never raises for a failed
    attempt.
    """
    attempts = max(1, policy.attempts)
    result = DiscoveryResult(error="No attempts made")
    for attempt in range(1, attempts + 1):
        result = operation()
        result.attempts = attempt
        if result.ok:
            return result
        logger.warning("Port discovery attempt %d/%d failed: %s", attempt, attempts, result.error)
        if attempt < attempts:
            sleep(policy.delay)
    return result


class ProcessedPortCache:
    """Per-(pid, port) stats reused between scans for at most ``ttl`` seconds."""

    def __init__(self, ttl: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Tuple[int, int], Tuple[float, ProcessStats]] = {}

    def get(self, key: Tuple[int, int]) -> Optional[ProcessStats]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, stats = entry
        if self._clock() - stored_at >= self.ttl:
            del self._entries[key]
            return None
        return stats

    def put(self, key: Tuple[int, int], stats: ProcessStats) -> None:
        self._entries[key] = (self._clock(), stats)

    def prune(self) -> int:
        now = self._clock()
        expired = [k for k, (ts, _) in self._entries.items() if now - ts >= self.ttl]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


def _dedupe(records: List[PortRecord]) -> List[PortRecord]:
    # lsof reports IPv4 and IPv6 sockets of one listener separately
    seen: Dict[Tuple[int, int], PortRecord] = {}
    for r in records:
        seen.setdefault(r.key, r)
    return list(seen.values())


class PortScanner:
    """Discover listening ports and build the enriched per-scan registry."""

    def __init__(
        self,
        platform: Optional[PlatformStrategy] = None,
        runner: Optional[CommandRunner] = None,
        classifier: Optional[ProtectionClassifier] = None,
        settings: Optional[ScanSettings] = None,
        stats_provider: StatsProvider = get_process_stats,
        cache: Optional[ProcessedPortCache] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or ScanSettings()
        self.platform = platform or detect_platform()
        self.runner = runner or SubprocessRunner(timeout=self.settings.command_timeout)
        self.classifier = classifier or ProtectionClassifier()
        self.stats_provider = stats_provider
        self.cache = cache if cache is not None else ProcessedPortCache(ttl=self.settings.cache_ttl)
        self._sleep = sleep

    # -- discovery -------------------------------------------------------

    def _failure(self, error: Optional[str]) -> DiscoveryResult:
        described = describe_scan_failure(error, self.platform.is_windows)
        return DiscoveryResult(error=error, user_message=described.user_message)

    def discover(self) -> DiscoveryResult:
        """One pass of the primary listing command and its parser."""
        result = self.runner.run(self.platform.list_command())
        if not result.ok:
            if self.platform.is_empty_result(result):
                return DiscoveryResult()
            return self._failure(result.error)

        records = _dedupe(self.platform.parse(result.stdout))
        if self.settings.resolve_process_names:
            records = self.platform.resolve_names(records, self.runner)
        logger.debug("Discovered %d listening port(s)", len(records))
        return DiscoveryResult(records=records)

    def discover_fallback(self) -> DiscoveryResult:
        """One pass of the platform's secondary listing command, if it has one."""
        cmd = self.platform.fallback_command()
        if cmd is None:
            return DiscoveryResult(error="No fallback available", user_message=describe_scan_failure(None).user_message)
        result = self.runner.run(cmd)
        if not result.ok:
            return self._failure(result.error)
        records = self.platform.parse_fallback(result.stdout)
        return DiscoveryResult(records=records, used_fallback=True)

    def scan_with_retry(self, max_attempts: Optional[int] = None, delay: Optional[float] = None) -> DiscoveryResult:
        policy = RetryPolicy(
            attempts=max_attempts if max_attempts is not None else self.settings.retry_attempts,
            delay=delay if delay is not None else self.settings.retry_delay,
        )
        return run_with_retry(self.discover, policy, sleep=self._sleep)

    def scan_with_fallback(self) -> DiscoveryResult:
        primary = self.discover()
        if primary.ok:
            return primary
        logger.warning("Primary port discovery failed (%s); trying fallback", primary.error)
        fallback = self.discover_fallback()
        if fallback.ok:
            return fallback
        # Report the primary failure; it is the one the user can act on
        return primary if fallback.error == "No fallback available" else fallback

    # -- registry --------------------------------------------------------

    def get_process_stats(self, pid: int) -> ProcessStats:
        try:
            return self.stats_provider(pid)
        except Exception as e:
            logger.debug("Stats provider failed for PID %s: %s", pid, e)
            return ProcessStats()

    def _stats_for(self, record: PortRecord) -> ProcessStats:
        if not self.settings.collect_stats or record.pid <= 0:
            return ProcessStats()
        cached = self.cache.get(record.key)
        if cached is not None:
            return cached
        stats = self.get_process_stats(record.pid)
        self.cache.put(record.key, stats)
        return stats

    def enrich(self, records: List[PortRecord]) -> List[PortRecord]:
        """Attach stats, protection verdicts and the critical-port flag."""
        enriched = []
        for r in records:
            stats = self._stats_for(r)
            enriched.append(
                r.model_copy(
                    update={
                        "cpu_percent": stats.cpu_percent,
                        "memory_bytes": stats.memory_bytes,
                        "protection": self.classifier.classify(r.process_name, r.port),
                        "is_critical": self.classifier.is_critical_port(r.port),
                    }
                )
            )
        self.cache.prune()
        enriched.sort(key=lambda r: (r.port, r.pid))
        return enriched

    def scan_ports(self, max_attempts: Optional[int] = None, use_fallback: Optional[bool] = None) -> ScanResponse:
        """Full scan: retried discovery, optional fallback, then enrichment."""
        if use_fallback is None:
            use_fallback = self.settings.use_fallback
        try:
            result = self.scan_with_retry(max_attempts=max_attempts)
            if not result.ok and use_fallback:
                fallback = self.discover_fallback()
                if fallback.ok:
                    fallback.attempts = result.attempts
                    result = fallback
            if not result.ok:
                return ScanResponse(
                    success=False,
                    error=result.error,
                    user_message=result.user_message or "Unable to scan ports",
                    attempts=result.attempts,
                    scanned_at=now_utc(),
                )
            records = self.enrich(result.records)
        except Exception as e:
            logger.exception("Port scan failed unexpectedly")
            return ScanResponse(
                success=False,
                error=str(e),
                user_message="An unexpected error occurred",
                scanned_at=now_utc(),
            )

        return ScanResponse(
            success=True,
            data=records,
            limited=result.used_fallback,
            limited_message=FALLBACK_MESSAGE if result.used_fallback else None,
            used_fallback=result.used_fallback,
            attempts=result.attempts,
            scanned_at=now_utc(),
            stats=ScanStats(
                total=len(records),
                critical=sum(1 for r in records if r.is_critical),
                protected=sum(1 for r in records if r.protection.is_protected),
            ),
        )

    def get_port_info(self, port: int) -> PortInfoResponse:
        """Owner of a single listening port; ``data`` is None when the port is free."""
        if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
            return PortInfoResponse(success=False, error=f"Invalid port: {port!r}")
        try:
            result = self.runner.run(self.platform.port_command(port))
            if not result.ok:
                if self.platform.is_empty_result(result):
                    return PortInfoResponse(success=True, data=None)
                return PortInfoResponse(success=False, error=result.error)
            records = _dedupe(self.platform.parse_port(result.stdout, port))
            if not records:
                return PortInfoResponse(success=True, data=None)
            first = records[:1]
            if self.settings.resolve_process_names:
                first = self.platform.resolve_names(first, self.runner)
            return PortInfoResponse(success=True, data=self.enrich(first)[0])
        except Exception as e:
            logger.exception("Port lookup for %s failed unexpectedly", port)
            return PortInfoResponse(success=False, error=str(e))

    def check_system(self) -> SystemCheck:
        missing = [c for c in self.platform.required_commands if shutil.which(c) is None]
        return SystemCheck(
            platform=self.platform.name,
            has_commands=not missing,
            missing_commands=missing,
            is_elevated=is_elevated(),
        )


class PortSession:
    """Keeps the previous snapshot so each refresh reports what changed."""

    def __init__(self, scanner: PortScanner):
        self.scanner = scanner
        self.previous: Optional[List[PortRecord]] = None

    def refresh(self) -> Tuple[ScanResponse, PortChanges]:
        response = self.scanner.scan_ports()
        if not response.success:
            return response, PortChanges()
        changes = analyze_changes(response.data, self.previous or [])
        self.previous = response.data
        return response, changes
