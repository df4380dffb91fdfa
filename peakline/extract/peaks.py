"""
peakline.extract.peaks - Peak aggregation over raw PCM bytes.
"""

from __future__ import annotations

import numpy as np

PCM16_DTYPE = np.dtype("<i2")


def pcm16_samples(pcm: bytes) -> np.ndarray:
    """View little-endian 16-bit PCM bytes as an int16 array.

    An odd trailing byte is not paired into a sample and is dropped.
    """
    usable = len(pcm) - (len(pcm) % 2)
    if usable == 0:
        return np.empty(0, dtype=PCM16_DTYPE)
    return np.frombuffer(pcm, dtype=PCM16_DTYPE, count=usable // 2)


def peak_amplitude(pcm: bytes) -> int:
    """Return the maximum absolute sample value in a PCM buffer.

    Samples are widened to int32 before taking the magnitude so that
    -32768 maps to 32768 instead of wrapping.

    Args:
        pcm: Little-endian signed 16-bit samples

    Returns:
        Peak magnitude, 0 for an empty buffer
    """
    samples = pcm16_samples(pcm)
    if samples.size == 0:
        return 0
    return int(np.abs(samples.astype(np.int32)).max())
