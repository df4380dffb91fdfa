"""
peakline.extract.wav - Uncompressed (WAV) decode adapter.

Fully decodes the container with the stdlib wave module and buckets the
interleaved sample stream into true seconds. Channels are not
de-interleaved: a stereo file fills each bucket with sample_rate values
drawn from both channels, so one bucket spans half a second of audio.
"""

from __future__ import annotations

import io
import wave
from typing import BinaryIO

import numpy as np

from peakline.exceptions import DecodeIOError, InvalidContainerError
from peakline.logging import logger
from peakline.models import AmplitudePoint


def read_wav(data: bytes) -> tuple[np.ndarray, int]:
    """Decode WAV bytes into a flat int64 sample array and its sample rate.

    8-bit audio is re-centred around zero; 16, 24 and 32-bit audio keep
    their native signed range.

    Raises:
        InvalidContainerError: If the header or sample format is invalid
    """
    try:
        with wave.open(io.BytesIO(data), "rb") as wav_file:
            sample_rate = wav_file.getframerate()
            sample_width = wav_file.getsampwidth()
            raw = wav_file.readframes(wav_file.getnframes())
    except (wave.Error, EOFError) as e:
        raise InvalidContainerError(f"Invalid WAV file: {e}") from e

    if sample_rate <= 0:
        raise InvalidContainerError(f"Invalid WAV sample rate: {sample_rate}")

    usable = len(raw) - (len(raw) % sample_width)
    raw = raw[:usable]
    if not raw:
        return np.empty(0, dtype=np.int64), sample_rate

    if sample_width == 1:
        samples = np.frombuffer(raw, dtype=np.uint8).astype(np.int64) - 128
    elif sample_width == 2:
        samples = np.frombuffer(raw, dtype="<i2").astype(np.int64)
    elif sample_width == 3:
        triplets = np.frombuffer(raw, dtype=np.uint8).reshape(-1, 3).astype(np.int64)
        samples = triplets[:, 0] | (triplets[:, 1] << 8) | (triplets[:, 2] << 16)
        samples = np.where(samples >= 1 << 23, samples - (1 << 24), samples)
    elif sample_width == 4:
        samples = np.frombuffer(raw, dtype="<i4").astype(np.int64)
    else:
        raise InvalidContainerError(f"Unsupported WAV sample width: {sample_width} bytes")

    return samples, sample_rate


def bucket_peaks(samples: np.ndarray, sample_rate: int) -> list[AmplitudePoint]:
    """Reduce a flat sample array to one peak per sample_rate samples.

    Bucket index is sample_index // sample_rate. Only buckets holding at
    least one sample are produced.
    """
    if samples.size == 0:
        return []

    magnitudes = np.abs(samples)
    starts = np.arange(0, samples.size, sample_rate)
    peaks = np.maximum.reduceat(magnitudes, starts)
    return [
        AmplitudePoint(timestamp=int(start // sample_rate), amplitude=int(peak))
        for start, peak in zip(starts, peaks)
    ]


def decode_wav(source: BinaryIO) -> list[AmplitudePoint]:
    """Decode a WAV byte source into per-second peak amplitudes.

    Args:
        source: Readable binary stream positioned at the start of the file

    Returns:
        Peak amplitude per bucket; empty for a zero-length source

    Raises:
        InvalidContainerError: If the WAV header is invalid
        DecodeIOError: If reading the source fails
    """
    try:
        data = source.read()
    except OSError as e:
        raise DecodeIOError(f"Failed to read WAV source: {e}") from e

    if not data:
        logger.debug("Empty WAV source, no samples to bucket")
        return []

    samples, sample_rate = read_wav(data)
    series = bucket_peaks(samples, sample_rate)
    logger.debug(
        "Decoded WAV: %d samples at %d Hz into %d buckets",
        samples.size,
        sample_rate,
        len(series),
    )
    return series
