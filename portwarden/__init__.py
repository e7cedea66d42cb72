"""Portwarden package.

Discovers listening TCP ports on the local host, attributes each to its
owning process, classifies processes and ports by a protection policy and
stops owning processes through a confirmable termination flow.

Only local commands (lsof/netstat, kill/taskkill) are used; no network
actions are performed.
"""

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
