"""Tests for peakline.extract.mp3 module."""

from __future__ import annotations

import io
import logging
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest

from peakline.config import DecodeSettings
from peakline.exceptions import DecodeIOError, DependencyError, InvalidContainerError
from peakline.extract import mp3
from peakline.extract.mp3 import FFmpegPCMStream, decode_mp3, iter_window_peaks

requires_ffmpeg = pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")


class ChunkedStream:
    """PCM reader returning scripted chunks, then raising or signalling EOF."""

    def __init__(self, chunks: list[bytes], error: Exception | None = None) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.sizes: list[int] = []

    def read(self, size: int) -> bytes:
        self.sizes.append(size)
        if self.chunks:
            return self.chunks.pop(0)
        if self.error is not None:
            raise self.error
        return b""


class FakeFFmpegStream:
    """Stands in for FFmpegPCMStream, serving canned PCM."""

    pcm = b""
    fed: list[bytes] = []

    def __init__(self, source, settings: DecodeSettings) -> None:
        self.source = source
        self.settings = settings
        self.buffer = io.BytesIO(self.pcm)
        self.bytes_read = 0

    def __enter__(self) -> FakeFFmpegStream:
        FakeFFmpegStream.fed.append(self.source.read())
        return self

    def __exit__(self, *exc_info) -> None:
        pass

    def read(self, size: int) -> bytes:
        data = self.buffer.read(size)
        self.bytes_read += len(data)
        return data


class TestIterWindowPeaks:
    def test_sequential_timestamps(self, pcm16: Callable[..., bytes]) -> None:
        stream = ChunkedStream([pcm16(100, -200), pcm16(50), pcm16(-7, 7)])
        points = list(iter_window_peaks(stream, 4))
        assert [(p.timestamp, p.amplitude) for p in points] == [(0, 200), (1, 50), (2, 7)]

    def test_requests_fixed_window_size(self, pcm16: Callable[..., bytes]) -> None:
        stream = ChunkedStream([pcm16(1), pcm16(2)])
        list(iter_window_peaks(stream, 96000))
        assert set(stream.sizes) == {96000}

    def test_short_final_window_still_counted(self) -> None:
        stream = io.BytesIO(np.arange(10, dtype="<i2").tobytes())
        points = list(iter_window_peaks(stream, 8))
        assert [(p.timestamp, p.amplitude) for p in points] == [(0, 3), (1, 7), (2, 9)]

    def test_empty_stream(self) -> None:
        assert list(iter_window_peaks(ChunkedStream([]), 8)) == []

    def test_partial_window_emitted_before_error(self, pcm16: Callable[..., bytes]) -> None:
        stream = ChunkedStream([pcm16(-300)], error=DecodeIOError("decoder died"))
        windows = iter_window_peaks(stream, 96000)

        first = next(windows)
        assert (first.timestamp, first.amplitude) == (0, 300)
        with pytest.raises(DecodeIOError):
            next(windows)

    def test_odd_length_window_ignores_trailing_byte(self, pcm16: Callable[..., bytes]) -> None:
        stream = ChunkedStream([pcm16(12, -40) + b"\x80"])
        points = list(iter_window_peaks(stream, 5))
        assert points[0].amplitude == 40

    def test_invalid_window_size(self) -> None:
        with pytest.raises(ValueError):
            list(iter_window_peaks(ChunkedStream([]), 0))


class TestDecodeSettingsWindow:
    def test_default_window_is_one_nominal_second(self) -> None:
        assert DecodeSettings().window_bytes == 96000

    def test_window_follows_nominal_rate(self) -> None:
        assert DecodeSettings(nominal_sample_rate=44100).window_bytes == 88200


class TestDecodeMp3:
    def test_empty_source_skips_decoder(self) -> None:
        settings = DecodeSettings(ffmpeg_binary="definitely-not-ffmpeg-binary")
        assert decode_mp3(io.BytesIO(b""), settings) == []

    def test_missing_ffmpeg_raises_dependency_error(self) -> None:
        settings = DecodeSettings(ffmpeg_binary="definitely-not-ffmpeg-binary")
        with pytest.raises(DependencyError) as exc_info:
            decode_mp3(io.BytesIO(b"\xff\xfb\x90\x00"), settings)
        assert exc_info.value.install_hint

    def test_windows_sized_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        FakeFFmpegStream.pcm = np.array([1, -2, 3, -4, 5, -6, 7, -8, 9, -10], dtype="<i2").tobytes()
        FakeFFmpegStream.fed = []
        monkeypatch.setattr(mp3, "FFmpegPCMStream", FakeFFmpegStream)

        settings = DecodeSettings(nominal_sample_rate=4)
        series = decode_mp3(io.BytesIO(b"ID3 fake mp3 payload"), settings)

        assert [(p.timestamp, p.amplitude) for p in series] == [(0, 4), (1, 8), (2, 10)]

    def test_source_fed_in_full(self, monkeypatch: pytest.MonkeyPatch) -> None:
        FakeFFmpegStream.pcm = b""
        FakeFFmpegStream.fed = []
        monkeypatch.setattr(mp3, "FFmpegPCMStream", FakeFFmpegStream)

        decode_mp3(io.BytesIO(b"ID3 fake mp3 payload"))

        assert FakeFFmpegStream.fed == [b"ID3 fake mp3 payload"]

    def test_source_read_failure(self) -> None:
        class FailingSource:
            def read(self, size: int = -1) -> bytes:
                raise OSError("disk gone")

        with pytest.raises(DecodeIOError):
            decode_mp3(FailingSource())


class TestFFmpegPCMStream:
    def test_command_outputs_s16le(self) -> None:
        stream = FFmpegPCMStream(io.BytesIO(b""), DecodeSettings(channels=1))
        cmd = stream.command("/usr/bin/ffmpeg")
        assert cmd[0] == "/usr/bin/ffmpeg"
        assert cmd[cmd.index("-f", cmd.index("pipe:0")) + 1] == "s16le"
        assert cmd[cmd.index("-ac") + 1] == "1"
        assert cmd[-1] == "pipe:1"

    @requires_ffmpeg
    def test_garbage_input_is_invalid_container(self) -> None:
        with pytest.raises(InvalidContainerError):
            decode_mp3(io.BytesIO(b"definitely not an mp3 stream " * 200))

    @requires_ffmpeg
    def test_decodes_real_mp3(self, tmp_path: Path, wav_factory: Callable[..., bytes]) -> None:
        t = np.arange(16000 * 3)
        tone = (np.sin(2 * np.pi * 440 * t / 16000) * 12000).astype(np.int64)
        wav_path = tmp_path / "tone.wav"
        wav_path.write_bytes(wav_factory(tone, sample_rate=16000))
        mp3_path = tmp_path / "tone.mp3"

        proc = subprocess.run(
            ["ffmpeg", "-y", "-loglevel", "error", "-i", str(wav_path), str(mp3_path)],
            capture_output=True,
        )
        if proc.returncode != 0:
            pytest.skip("ffmpeg built without an MP3 encoder")

        settings = DecodeSettings(nominal_sample_rate=16000)
        with open(mp3_path, "rb") as f:
            series = decode_mp3(f, settings)

        assert len(series) >= 3
        assert [p.timestamp for p in series] == list(range(len(series)))
        assert all(0 <= p.amplitude <= 32768 for p in series)
        assert max(p.amplitude for p in series) > 5000


class TestDecoderExit:
    def test_failure_after_output_keeps_windows(
        self,
        fake_ffmpeg: Callable[..., str],
        pcm16: Callable[..., bytes],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        binary = fake_ffmpeg(pcm16(-300, 5, 7), stderr="corrupt frame", exit_code=1)
        settings = DecodeSettings(ffmpeg_binary=binary, nominal_sample_rate=2)

        with caplog.at_level(logging.WARNING, logger="peakline"):
            series = decode_mp3(io.BytesIO(b"\xff\xfb" * 100), settings)

        assert [(p.timestamp, p.amplitude) for p in series] == [(0, 300), (1, 7)]
        assert "corrupt frame" in caplog.text

    def test_clean_exit(self, fake_ffmpeg: Callable[..., str], pcm16: Callable[..., bytes]) -> None:
        binary = fake_ffmpeg(pcm16(1, -2, 3, -4))
        settings = DecodeSettings(ffmpeg_binary=binary, nominal_sample_rate=2)

        series = decode_mp3(io.BytesIO(b"\xff\xfb" * 100), settings)

        assert [(p.timestamp, p.amplitude) for p in series] == [(0, 2), (1, 4)]

    def test_failure_without_output_is_invalid_container(
        self, fake_ffmpeg: Callable[..., str]
    ) -> None:
        binary = fake_ffmpeg(b"", stderr="Invalid data found", exit_code=1)
        settings = DecodeSettings(ffmpeg_binary=binary)

        with pytest.raises(InvalidContainerError, match="Invalid data found"):
            decode_mp3(io.BytesIO(b"\xff\xfb" * 100), settings)

    def test_read_before_open(self) -> None:
        stream = FFmpegPCMStream(io.BytesIO(b"\xff\xfb"))
        with pytest.raises(RuntimeError):
            stream.read(4)
