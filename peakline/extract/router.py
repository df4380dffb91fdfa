"""
peakline.extract.router - Format routing to decode adapters.

Trusts the declared extension (or an explicit format tag) and never sniffs
magic bytes; content that doesn't match its extension fails inside the
chosen adapter.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import PurePath
from typing import BinaryIO

from peakline.config import DecodeSettings
from peakline.exceptions import UnsupportedFormatError
from peakline.extract.mp3 import decode_mp3
from peakline.extract.wav import decode_wav
from peakline.logging import logger
from peakline.models import AmplitudePoint

SUPPORTED_EXTENSIONS: dict[str, str] = {
    ".wav": "wav",
    ".mp3": "mp3",
}

Decoder = Callable[[BinaryIO, DecodeSettings], list[AmplitudePoint]]

DECODERS: dict[str, Decoder] = {
    "wav": lambda source, settings: decode_wav(source),
    "mp3": decode_mp3,
}


def resolve_format(filename: str, fmt: str | None = None) -> str:
    """Resolve the decoder format for a file.

    An explicit format tag ("wav", "mp3", ".wav", ...) takes precedence over
    the filename's extension. Matching is case-insensitive.

    Raises:
        UnsupportedFormatError: If neither names a supported format
    """
    if fmt:
        tag = fmt.lower().lstrip(".")
        if tag in DECODERS:
            return tag
        raise UnsupportedFormatError(fmt)

    suffix = PurePath(filename).suffix.lower()
    if suffix in SUPPORTED_EXTENSIONS:
        return SUPPORTED_EXTENSIONS[suffix]
    raise UnsupportedFormatError(suffix or filename)


def decode_audio(
    filename: str,
    source: BinaryIO,
    settings: DecodeSettings | None = None,
    fmt: str | None = None,
) -> list[AmplitudePoint]:
    """Route a byte source to its decoder and return the unsorted series."""
    resolved = resolve_format(filename, fmt)
    logger.debug("Decoding %s as %s", filename, resolved)
    return DECODERS[resolved](source, settings or DecodeSettings())
