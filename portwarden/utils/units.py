from __future__ import annotations


def format_bytes(size: float) -> str:
    """Human-readable size: B, KB, MB or GB with one decimal."""
    if size > 1024 ** 3:
        return f"{size / 1024 ** 3:.1f} GB"
    if size > 1024 ** 2:
        return f"{size / 1024 ** 2:.1f} MB"
    if size > 1024:
        return f"{size / 1024:.1f} KB"
    return f"{int(size)} B"
