from portwarden.parsing.netstat import filter_port_lines, parse_netstat_unix, parse_netstat_windows
from portwarden.parsing.tasklist import parse_tasklist_csv

from conftest import NETSTAT_WINDOWS, TASKLIST_CSV


def test_parse_windows_listening_rows():
    records = parse_netstat_windows(NETSTAT_WINDOWS)

    ports = {(r.port, r.pid) for r in records}
    assert (3000, 12345) in ports
    assert (3306, 23456) in ports
    assert (443, 4) in ports  # IPv6 [::]:443
    # ESTABLISHED and UDP rows are not listening sockets
    assert all(r.port not in (50000, 123) for r in records)
    assert all(r.process_name == "Unknown" for r in records)


def test_windows_empty_and_malformed():
    assert parse_netstat_windows("\nActive Connections\n\n") == []
    assert parse_netstat_windows("\nActive Connections\nInvalid format here\nERROR STATUS") == []
    assert parse_netstat_windows("  TCP    0.0.0.0:80   0.0.0.0:0   LISTENING   notapid") == []
    assert parse_netstat_windows("  TCP    0.0.0.0:80   LISTENING") == []


def test_filter_port_lines_matches_local_port_only():
    filtered = filter_port_lines(NETSTAT_WINDOWS, 3000)
    records = parse_netstat_windows(filtered)
    assert [(r.port, r.pid) for r in records] == [(3000, 12345)]


def test_parse_unix_netstat_linux_and_bsd_notation():
    output = """Active Internet connections (servers and established)
Proto Recv-Q Send-Q Local Address           Foreign Address         State
tcp        0      0 0.0.0.0:22              0.0.0.0:*               LISTEN
tcp6       0      0 :::8080                 :::*                    LISTEN
tcp4       0      0  *.3000                 *.*                     LISTEN
tcp4       0      0  127.0.0.1.5432         *.*                     LISTEN
tcp        0      0 10.0.0.2:22             10.0.0.9:50514          ESTABLISHED
udp        0      0 0.0.0.0:68              0.0.0.0:*"""
    records = parse_netstat_unix(output)

    assert [r.port for r in records] == [22, 8080, 3000, 5432]
    assert all(r.pid == 0 and r.process_name == "Unknown" for r in records)


def test_parse_tasklist_csv():
    names = parse_tasklist_csv(TASKLIST_CSV + "INFO: No tasks are running which match the specified criteria.\n")
    assert names[12345] == "node.exe"
    assert names[4] == "System"
    assert len(names) == 4


def test_state_column_decides_listening():
    windows = "  TCP    127.0.0.1:50000    127.0.0.1:3000    ESTABLISHED    777 LISTENING"
    assert parse_netstat_windows(windows) == []

    unix = "tcp        0      0 10.0.0.2:22             10.0.0.9:50514          ESTABLISHED LISTEN"
    assert parse_netstat_unix(unix) == []
