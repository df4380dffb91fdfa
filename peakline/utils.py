"""
peakline.utils - Shared display helpers.
"""

from __future__ import annotations

from pathlib import Path


def format_size(path: Path) -> str:
    """Format file size in human-readable format."""
    if not path.exists():
        return "-"
    size = path.stat().st_size
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def amplitude_bar(amplitude: float, max_amplitude: float, width: int = 40) -> str:
    """Render an amplitude as a horizontal bar scaled to the series max."""
    if max_amplitude <= 0 or width <= 0:
        return ""
    filled = round(width * min(amplitude / max_amplitude, 1.0))
    return "█" * filled
