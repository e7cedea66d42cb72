from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


ProtectionLevel = Literal["none", "warning", "critical"]


class ProtectionVerdict(BaseModel):
    level: ProtectionLevel = "none"
    reasons: List[str] = Field(default_factory=list)
    can_override: bool = True

    @property
    def is_protected(self) -> bool:
        return self.level != "none"


class PortRecord(BaseModel):
    port: int = Field(ge=1, le=65535)
    # 0 only for fallback records where the owner could not be resolved
    pid: int = Field(ge=0)
    process_name: str = "Unknown"
    user: str = "Unknown"
    protocol: Literal["tcp", "udp"] = "tcp"
    address: Optional[str] = None
    cpu_percent: float = 0.0
    memory_bytes: int = 0
    protection: ProtectionVerdict = Field(default_factory=ProtectionVerdict)
    is_critical: bool = False

    @property
    def key(self) -> tuple[int, int]:
        """Identity of the record within a scan and across scans."""
        return self.port, self.pid


class ProcessStats(BaseModel):
    cpu_percent: float = 0.0
    memory_bytes: int = 0


class ScanStats(BaseModel):
    total: int = 0
    critical: int = 0
    protected: int = 0


class ScanResponse(BaseModel):
    success: bool
    data: List[PortRecord] = Field(default_factory=list)
    limited: bool = False
    limited_message: Optional[str] = None
    error: Optional[str] = None
    user_message: Optional[str] = None
    used_fallback: bool = False
    attempts: int = 1
    scanned_at: Optional[datetime] = None
    stats: ScanStats = Field(default_factory=ScanStats)


class PortInfoResponse(BaseModel):
    success: bool
    data: Optional[PortRecord] = None
    error: Optional[str] = None


class DiscoveryResult(BaseModel):
    """Outcome of one discovery pass (command + parser), before enrichment."""

    records: List[PortRecord] = Field(default_factory=list)
    error: Optional[str] = None
    user_message: Optional[str] = None
    used_fallback: bool = False
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None


class KillRequest(BaseModel):
    pid: int = Field(gt=0)
    process_name: Optional[str] = None
    port: Optional[int] = None
    force_stop: bool = False


class KillResult(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    user_message: Optional[str] = None
    suggestion: Optional[str] = None
    protected: Optional[bool] = None
    needs_elevation: Optional[bool] = None
    user_cancelled: Optional[bool] = None
    protection: Optional[ProtectionVerdict] = None


class ModifiedPort(BaseModel):
    record: PortRecord
    previous_cpu_percent: float = 0.0
    previous_memory_bytes: int = 0


class PortChanges(BaseModel):
    added: List[PortRecord] = Field(default_factory=list)
    removed: List[PortRecord] = Field(default_factory=list)
    modified: List[ModifiedPort] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)


class SystemCheck(BaseModel):
    platform: str
    has_commands: bool
    missing_commands: List[str] = Field(default_factory=list)
    is_elevated: bool = False
