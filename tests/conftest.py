"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

import io
import sys
import wave
from collections.abc import Callable, Sequence
from pathlib import Path

import numpy as np
import pytest

from peakline.models import AmplitudePoint
from peakline.store import RunStore


def make_wav_bytes(
    samples: Sequence[int] | np.ndarray,
    sample_rate: int = 8000,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Build an in-memory WAV file from interleaved integer samples."""
    values = np.asarray(samples, dtype=np.int64)
    if sample_width == 1:
        frames = (values + 128).astype(np.uint8).tobytes()
    elif sample_width == 2:
        frames = values.astype("<i2").tobytes()
    elif sample_width == 3:
        unsigned = values & 0xFFFFFF
        frames = b"".join(int(v).to_bytes(3, "little") for v in unsigned)
    else:
        frames = values.astype("<i4").tobytes()

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(sample_width)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(frames)
    return buffer.getvalue()


@pytest.fixture
def wav_factory() -> Callable[..., bytes]:
    """Return the in-memory WAV builder."""
    return make_wav_bytes


@pytest.fixture
def store(tmp_path: Path) -> RunStore:
    """Create a run store rooted in a temporary directory."""
    return RunStore(tmp_path / "uploads")


@pytest.fixture
def sample_series() -> list[AmplitudePoint]:
    """Return an unsorted amplitude series."""
    return [
        AmplitudePoint(timestamp=2, amplitude=50),
        AmplitudePoint(timestamp=0, amplitude=10),
        AmplitudePoint(timestamp=1, amplitude=30),
    ]


@pytest.fixture
def two_second_wav() -> bytes:
    """Return a mono 8 kHz WAV with peaks 1000 then 32768."""
    samples = np.zeros(16000, dtype=np.int64)
    samples[10] = 1000
    samples[20] = -999
    samples[8000] = 12
    samples[12000] = -32768
    return make_wav_bytes(samples, sample_rate=8000)


@pytest.fixture
def pcm16() -> Callable[..., bytes]:
    """Return an encoder for little-endian signed 16-bit PCM."""

    def encode(*samples: int) -> bytes:
        return np.asarray(samples, dtype="<i2").tobytes()

    return encode


@pytest.fixture
def fake_ffmpeg(tmp_path: Path) -> Callable[..., str]:
    """Return a builder for a stand-in ffmpeg executable.

    The script drains stdin, writes the given PCM to stdout and the given
    message to stderr, then exits with the given status.
    """
    if sys.platform == "win32":
        pytest.skip("shell script stand-in needs a POSIX shell")

    def build(pcm: bytes, stderr: str = "", exit_code: int = 0) -> str:
        octal = "".join(f"\\{byte:03o}" for byte in pcm)
        script = tmp_path / "fake-ffmpeg"
        script.write_text(
            "#!/bin/sh\n"
            "cat > /dev/null\n"
            f"printf '{octal}'\n"
            f"printf '%s\\n' '{stderr}' >&2\n"
            f"exit {exit_code}\n"
        )
        script.chmod(0o755)
        return str(script)

    return build
