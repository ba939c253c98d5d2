from __future__ import annotations


def _split(seconds: float) -> tuple[int, int, int]:
    total = max(int(seconds), 0)
    return total // 3600, (total % 3600) // 60, total % 60


def format_clock(seconds: float) -> str:
    """Render ``H:MM:SS`` from one hour on, ``M:SS`` below."""
    hours, minutes, secs = _split(seconds)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_clock_mmss(seconds: float) -> str:
    """Render ``MM:SS``; minutes keep counting past an hour."""
    total = max(int(seconds), 0)
    return f"{total // 60:02d}:{total % 60:02d}"


def format_duration(seconds: float) -> str:
    """Compact label such as ``1h 5m``, ``3m 2s`` or ``5s``."""
    hours, minutes, secs = _split(seconds)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
