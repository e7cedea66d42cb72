from __future__ import annotations

import csv
import io
from typing import Dict


def parse_tasklist_csv(output: str) -> Dict[int, str]:
    """Map PID -> image name from ``tasklist /FO CSV /NH`` output.

    Rows look like ``"node.exe","12345","Console","1","52,432 K"``; rows
    with a non-numeric PID (headers, INFO lines) are ignored.
    """
    names: Dict[int, str] = {}
    reader = csv.reader(io.StringIO(output or ""))
    for row in reader:
        if len(row) < 2:
            continue
        image, pid_text = row[0].strip(), row[1].strip()
        if image and pid_text.isdigit():
            names[int(pid_text)] = image
    return names
