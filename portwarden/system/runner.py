from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass
class CommandResult:
    args: tuple[str, ...]
    stdout: str = ""
    stderr: str = ""
    returncode: Optional[int] = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CommandRunner(Protocol):
    def run(self, args: Sequence[str]) -> CommandResult:
        ...


class SubprocessRunner:
    """Run an external command and capture its output.

    No retries and no parsing happen here. Exec failures, timeouts and
    non-zero exit codes are reported through ``CommandResult.error``;
    anything else propagates to the caller.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout

    def run(self, args: Sequence[str]) -> CommandResult:
        argv = tuple(str(a) for a in args)
        logger.debug("Running %s", " ".join(argv))
        try:
            completed = subprocess.run(
                list(argv),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError:
            return self._failed(argv, f"ENOENT: command not found: {argv[0]}")
        except PermissionError as e:
            return self._failed(argv, f"EACCES: {e}")
        except subprocess.TimeoutExpired:
            return self._failed(argv, f"ETIMEDOUT: {argv[0]} timed out after {self.timeout:g}s")
        except OSError as e:
            return self._failed(argv, str(e))

        result = CommandResult(
            args=argv,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            returncode=completed.returncode,
        )
        if completed.returncode != 0:
            result.error = result.stderr.strip() or f"{argv[0]} exited with code {completed.returncode}"
            logger.warning("Command %s failed: %s", argv[0], result.error)
        return result

    @staticmethod
    def _failed(argv: tuple[str, ...], error: str) -> CommandResult:
        logger.warning("Command %s could not run: %s", argv[0], error)
        return CommandResult(args=argv, returncode=None, error=error)
