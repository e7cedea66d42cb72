from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Union

import pytest

from portwarden.system.runner import CommandResult


Response = Union[CommandResult, List[CommandResult], Callable[[tuple], CommandResult]]


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(args=(), stdout=stdout, returncode=0)


def fail(error: str, returncode: Optional[int] = 1, stderr: str = "") -> CommandResult:
    return CommandResult(args=(), stderr=stderr, returncode=returncode, error=error)


class FakeRunner:
    """Stands in for SubprocessRunner; answers commands from a lookup table.

    A list value is consumed one result per call, repeating its last entry.
    Unknown commands fail like a missing executable.
    """

    def __init__(self, responses: Optional[Dict[tuple, Response]] = None):
        self.responses: Dict[tuple, Response] = dict(responses or {})
        self.calls: List[tuple] = []

    def run(self, args: Sequence[str]) -> CommandResult:
        key = tuple(args)
        self.calls.append(key)
        resp = self.responses.get(key)
        if isinstance(resp, list):
            resp = resp.pop(0) if len(resp) > 1 else resp[0]
        if callable(resp):
            resp = resp(key)
        if resp is None:
            return CommandResult(args=key, returncode=None, error=f"ENOENT: command not found: {key[0]}")
        return resp


@pytest.fixture
def fake_runner() -> Callable[..., FakeRunner]:
    return FakeRunner


LSOF_NORMAL = """COMMAND     PID   USER   FD   TYPE             DEVICE SIZE/OFF NODE NAME
node      12345   user   23u  IPv4 0x123456789abcdef      0t0  TCP *:3000 (LISTEN)
postgres  23456   user    7u  IPv4 0xabcdef123456789      0t0  TCP *:5432 (LISTEN)
mysqld    34567   user   21u  IPv4 0xfedcba987654321      0t0  TCP *:3306 (LISTEN)
redis-ser 45678   user    6u  IPv4 0x111111111111111      0t0  TCP localhost:6379 (LISTEN)
Docker    56789   user   44u  IPv4 0x222222222222222      0t0  TCP *:8080 (LISTEN)
mongod    67890   user   12u  IPv4 0x333333333333333      0t0  TCP *:27017 (LISTEN)"""

LSOF_NODE_AND_POSTGRES = """COMMAND     PID   USER   FD   TYPE             DEVICE SIZE/OFF NODE NAME
node      12345   user   23u  IPv4 0x123456789abcdef      0t0  TCP *:3000 (LISTEN)
node      12345   user   24u  IPv6 0x123456789abcdf0      0t0  TCP *:3000 (LISTEN)
node      12345   user   25u  IPv4 0x123456789abcdf1      0t0  TCP 127.0.0.1:3000->127.0.0.1:51234 (ESTABLISHED)
postgres  23456   postgres 7u IPv4 0xabcdef123456789      0t0  TCP 127.0.0.1:5432 (LISTEN)"""

NETSTAT_WINDOWS = """
Active Connections

  Proto  Local Address          Foreign Address        State           PID
  TCP    0.0.0.0:80            0.0.0.0:0              LISTENING       4
  TCP    0.0.0.0:135           0.0.0.0:0              LISTENING       880
  TCP    0.0.0.0:3000          0.0.0.0:0              LISTENING       12345
  TCP    0.0.0.0:3306          0.0.0.0:0              LISTENING       23456
  TCP    127.0.0.1:6379        0.0.0.0:0              LISTENING       45678
  TCP    127.0.0.1:50000       127.0.0.1:3000         ESTABLISHED     777
  TCP    [::]:443              [::]:0                 LISTENING       4
  UDP    0.0.0.0:123           *:*                                    1092"""

TASKLIST_CSV = '''"System","4","Services","0","152 K"
"svchost.exe","880","Services","0","10,120 K"
"node.exe","12345","Console","1","52,432 K"
"mysqld.exe","23456","Services","0","89,456 K"
'''
