from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field
import yaml


class ProtectionPolicy(BaseModel):
    """Process and port lists driving the protection classifier."""

    # Core OS processes; never killable, whatever the user answers
    critical_processes: list[str] = Field(
        default_factory=lambda: [
            "kernel_task", "launchd", "systemd", "init",
            "System", "Registry", "smss.exe", "csrss.exe",
        ]
    )
    # Services that warn before termination but may be overridden
    protected_processes: list[str] = Field(
        default_factory=lambda: [
            # System
            "kernel_task", "launchd", "systemd", "init",
            "WindowServer", "loginwindow", "csrss.exe",
            "winlogon.exe", "services.exe", "lsass.exe",
            "svchost.exe", "explorer.exe", "finder",
            # Databases
            "postgres", "postgresql", "mysql", "mysqld",
            "mongod", "mongodb", "redis-server", "redis",
            # Containers and web servers
            "docker", "dockerd", "containerd",
            "nginx", "apache", "httpd",
        ]
    )
    # Name fragments selecting the reason text for a protected process
    database_processes: list[str] = Field(
        default_factory=lambda: ["postgres", "mysql", "mongod", "redis"]
    )
    infrastructure_processes: list[str] = Field(
        default_factory=lambda: ["docker", "containerd", "nginx", "apache", "httpd"]
    )
    system_processes: list[str] = Field(
        default_factory=lambda: [
            "WindowServer", "loginwindow", "explorer.exe", "finder",
            "winlogon.exe", "services.exe", "lsass.exe", "svchost.exe",
        ]
    )
    critical_ports: Dict[int, str] = Field(
        default_factory=lambda: {
            22: "SSH",
            80: "HTTP",
            443: "HTTPS",
            3306: "MySQL",
            5432: "PostgreSQL",
            27017: "MongoDB",
            6379: "Redis",
        }
    )
    system_port_limit: int = 1024


class ScanSettings(BaseModel):
    command_timeout: float = Field(default=10.0, gt=0)
    retry_attempts: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)
    # Staleness tolerated for per-(pid, port) stats between scans
    cache_ttl: float = Field(default=60.0, ge=0)
    use_fallback: bool = True
    resolve_process_names: bool = True
    collect_stats: bool = True


class AppConfig(BaseModel):
    protection: ProtectionPolicy = Field(default_factory=ProtectionPolicy)
    scan: ScanSettings = Field(default_factory=ScanSettings)


def load_config(path: Optional[Path]) -> AppConfig:
    """Load configuration from YAML path if provided, else return defaults."""
    if not path:
        return AppConfig()
    p = Path(path)
    if not p.exists():
        return AppConfig()
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return AppConfig(**data)
