"""
peakline.validation - Dependency checks and validation utilities.

Validates the environment and caller-supplied identifiers before any
decoding or storage work starts.
"""

from __future__ import annotations

import shutil
import subprocess

from peakline.exceptions import DependencyError, ValidationError

FFMPEG_INSTALL_HINT = "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)"


def check_ffmpeg(binary: str = "ffmpeg") -> str:
    """Resolve the FFmpeg executable.

    Args:
        binary: Executable name or path

    Returns:
        Absolute path to the executable

    Raises:
        DependencyError: If FFmpeg is not found
    """
    ffmpeg_path = shutil.which(binary)
    if not ffmpeg_path:
        raise DependencyError("ffmpeg", f"{binary} not found in PATH", FFMPEG_INSTALL_HINT)
    return ffmpeg_path


def ffmpeg_version(binary: str = "ffmpeg") -> str:
    """Get the FFmpeg version string, or "unknown" if it can't be parsed."""
    ffmpeg_path = check_ffmpeg(binary)
    try:
        proc = subprocess.run(
            [ffmpeg_path, "-version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        version_line = proc.stdout.split("\n")[0]
        return version_line.split()[2] if version_line else "unknown"
    except (subprocess.TimeoutExpired, IndexError):
        return "unknown"


def validate_run_id(run_id: str) -> str:
    """Check that a run id is usable as a single directory name.

    Raises:
        ValidationError: If the id is empty or would escape the storage root
    """
    if not isinstance(run_id, str) or not run_id.strip():
        raise ValidationError("Run id must be a non-empty string")
    if run_id in {".", ".."} or "/" in run_id or "\\" in run_id or "\x00" in run_id:
        raise ValidationError(f"Invalid run id: {run_id!r}")
    return run_id
