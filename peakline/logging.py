"""
peakline.logging - Centralized logging configuration.

All modules log through the "peakline" logger. Debug lines trace decode
progress (WAV buckets, PCM windows read from FFmpeg) and store activity
(staged uploads, written and discarded runs). Warnings report MP3 decodes
that FFmpeg cut short but whose decoded windows were kept.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("peakline")


def configure_logging(verbose: bool = False) -> None:
    """Configure logging for the peakline package.

    The package logger's level is set directly, so --verbose takes effect
    even when the root logger was configured earlier.

    Args:
        verbose: If True, enable DEBUG level logging; otherwise WARNING level
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )
    logger.setLevel(level)
