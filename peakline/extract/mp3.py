"""
peakline.extract.mp3 - Compressed (MP3) decode adapter.

Decodes through FFmpeg to raw 16-bit little-endian PCM and reads the output
in fixed windows of nominal_sample_rate * 2 bytes. The window size comes
from configuration, not from the stream header, so timestamps are window
counts rather than true seconds whenever the file's real rate or channel
count differs from the nominal values.
"""

from __future__ import annotations

import subprocess
import tempfile
import threading
from collections.abc import Iterator
from typing import BinaryIO, Protocol

from peakline.config import DecodeSettings
from peakline.exceptions import DecodeIOError, InvalidContainerError
from peakline.extract.peaks import peak_amplitude
from peakline.logging import logger
from peakline.models import AmplitudePoint
from peakline.validation import check_ffmpeg

FEED_CHUNK_SIZE = 65536


class PCMReader(Protocol):
    def read(self, size: int) -> bytes: ...


class _Prefixed:
    """Re-attach bytes already consumed from a stream."""

    def __init__(self, head: bytes, rest: BinaryIO):
        self.head = head
        self.rest = rest

    def read(self, size: int = -1) -> bytes:
        if self.head:
            head, self.head = self.head, b""
            if size < 0:
                return head + self.rest.read()
            return head + self.rest.read(max(size - len(head), 0))
        return self.rest.read(size)


class FFmpegPCMStream:
    """Readable s16le PCM stream produced by an FFmpeg subprocess.

    The compressed source is written to FFmpeg's stdin from a feeder
    thread while the caller reads PCM from stdout. read() returns b"" at
    end of stream, including when FFmpeg fails after producing PCM. It
    raises only when the source fails or no PCM was produced at all.
    """

    def __init__(self, source: BinaryIO, settings: DecodeSettings | None = None):
        self.source = source
        self.settings = settings or DecodeSettings()
        self.proc: subprocess.Popen | None = None
        self.bytes_read = 0
        self._feeder: threading.Thread | None = None
        self._feed_error: Exception | None = None
        self._stderr = None

    def command(self, ffmpeg_path: str) -> list[str]:
        return [
            ffmpeg_path,
            "-hide_banner",
            "-loglevel",
            "error",
            "-f",
            "mp3",
            "-i",
            "pipe:0",
            "-vn",
            "-f",
            "s16le",
            "-acodec",
            "pcm_s16le",
            "-ac",
            str(self.settings.channels),
            "pipe:1",
        ]

    def __enter__(self) -> FFmpegPCMStream:
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def open(self) -> None:
        ffmpeg_path = check_ffmpeg(self.settings.ffmpeg_binary)
        self._stderr = tempfile.TemporaryFile()
        try:
            self.proc = subprocess.Popen(
                self.command(ffmpeg_path),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=self._stderr,
            )
        except OSError as e:
            self._stderr.close()
            raise DecodeIOError(f"Failed to start FFmpeg: {e}") from e

        self._feeder = threading.Thread(target=self._feed, name="ffmpeg-feeder", daemon=True)
        self._feeder.start()

    def _process(self) -> subprocess.Popen:
        if self.proc is None:
            raise RuntimeError("FFmpegPCMStream is not open; call open() first")
        return self.proc

    def _feed(self) -> None:
        proc = self._process()
        try:
            while True:
                chunk = self.source.read(FEED_CHUNK_SIZE)
                if not chunk:
                    break
                proc.stdin.write(chunk)
        except BrokenPipeError:
            # FFmpeg stopped reading; its exit status reports why.
            logger.debug("FFmpeg closed stdin before the source was fully fed")
        except Exception as e:
            self._feed_error = e
        finally:
            try:
                proc.stdin.close()
            except BrokenPipeError:
                pass

    def read(self, size: int) -> bytes:
        """Read up to size bytes of PCM; fewer only at end of stream.

        A decoder error after some PCM was produced ends the stream like
        EOF, so the windows read so far are kept.
        """
        data = self._process().stdout.read(size)
        if data:
            self.bytes_read += len(data)
            return data
        self._finish()
        return b""

    def _finish(self) -> None:
        returncode = self._process().wait()
        if self._feeder is not None:
            self._feeder.join()
        stderr = self._read_stderr()

        if self._feed_error is not None:
            error = self._feed_error
            raise DecodeIOError(f"Failed to read MP3 source: {error}") from error
        if self.bytes_read == 0:
            detail = stderr or f"no audio decoded (ffmpeg exit {returncode})"
            raise InvalidContainerError(f"Invalid MP3 file: {detail}")
        if returncode != 0:
            logger.warning(
                "FFmpeg stopped after %d PCM bytes (exit %d), keeping decoded audio: %s",
                self.bytes_read,
                returncode,
                stderr,
            )

    def close(self) -> None:
        if self.proc is None:
            return
        if self.proc.poll() is None:
            self.proc.kill()
            self.proc.wait()
        if self._feeder is not None:
            self._feeder.join()
        if self.proc.stdout is not None:
            self.proc.stdout.close()
        if self._stderr is not None:
            self._stderr.close()

    def _read_stderr(self) -> str:
        if self._stderr is None:
            return ""
        self._stderr.seek(0)
        return self._stderr.read().decode("utf-8", "replace").strip()


def iter_window_peaks(stream: PCMReader, window_bytes: int) -> Iterator[AmplitudePoint]:
    """Yield one peak per fixed-size PCM window.

    Every non-empty read gets the next sequential timestamp, including a
    short final window. Iteration ends at the first empty read; an
    exception from read() propagates after the windows already yielded.
    """
    if window_bytes <= 0:
        raise ValueError("window_bytes must be positive")

    timestamp = 0
    while True:
        chunk = stream.read(window_bytes)
        if not chunk:
            return
        yield AmplitudePoint(timestamp=timestamp, amplitude=peak_amplitude(chunk))
        timestamp += 1


def decode_mp3(source: BinaryIO, settings: DecodeSettings | None = None) -> list[AmplitudePoint]:
    """Decode an MP3 byte source into fixed-window peak amplitudes.

    Args:
        source: Readable binary stream positioned at the start of the file
        settings: Decoder settings (nominal sample rate, channels, binary)

    Returns:
        Peak amplitude per window; empty for a zero-length source. A decoder
        failure after some PCM keeps the windows decoded up to that point.

    Raises:
        InvalidContainerError: If FFmpeg rejects the input outright
        DecodeIOError: If the source fails to read or FFmpeg cannot start
        DependencyError: If FFmpeg is not installed
    """
    settings = settings or DecodeSettings()

    try:
        head = source.read(1)
    except OSError as e:
        raise DecodeIOError(f"Failed to read MP3 source: {e}") from e
    if not head:
        logger.debug("Empty MP3 source, no windows to decode")
        return []

    with FFmpegPCMStream(_Prefixed(head, source), settings) as stream:
        series = list(iter_window_peaks(stream, settings.window_bytes))

    logger.debug(
        "Decoded MP3: %d PCM bytes into %d windows of %d bytes",
        stream.bytes_read,
        len(series),
        settings.window_bytes,
    )
    return series
