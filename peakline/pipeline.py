"""
peakline.pipeline - Extraction orchestrator.

Public entry points wiring the stages together:
- extract_run: format router → decode adapter → store.write
- load_run: store.read → recomputed metadata

Errors from any stage propagate unchanged; nothing is retried and nothing
is persisted for a run whose decode failed.
"""

from __future__ import annotations

import io
import uuid
from typing import Any, BinaryIO

from peakline.config import DecodeSettings
from peakline.extract.router import decode_audio, resolve_format
from peakline.logging import logger
from peakline.models import AmplitudePoint, SeriesMetadata, compute_metadata
from peakline.store import RunStore
from peakline.validation import validate_run_id


def new_run_id() -> str:
    """Generate a collision-free run identifier."""
    return str(uuid.uuid4())


def extract_run(
    run_id: str,
    filename: str,
    audio: bytes | BinaryIO,
    store: RunStore,
    settings: DecodeSettings | None = None,
    fmt: str | None = None,
) -> dict[str, Any]:
    """Decode an audio payload and persist its amplitude series.

    Args:
        run_id: Caller-supplied run identifier
        filename: Declared file name; its extension selects the decoder
        audio: Audio payload as bytes or a readable binary stream
        store: Run store receiving the artifact
        settings: Decoder settings for compressed audio
        fmt: Explicit format tag overriding the extension

    Returns:
        Dict with run summary

    Raises:
        UnsupportedFormatError: If the format isn't wav or mp3 (no I/O done)
        InvalidContainerError: If the audio fails container validation
        DecodeIOError: If the source or decoder fails mid-read
        PersistenceError: If the artifact can't be written
    """
    validate_run_id(run_id)
    resolved = resolve_format(filename, fmt)

    source = io.BytesIO(audio) if isinstance(audio, (bytes, bytearray, memoryview)) else audio
    series = decode_audio(filename, source, settings, fmt=resolved)
    artifact = store.write(run_id, series)
    metadata = compute_metadata(series)

    logger.debug(
        "Run %s: %d points, max amplitude %s",
        run_id,
        metadata.point_count,
        metadata.max_amplitude,
    )

    return {
        "run_id": run_id,
        "format": resolved,
        "point_count": metadata.point_count,
        "max_amplitude": metadata.max_amplitude,
        "artifact": str(artifact),
    }


def load_run(run_id: str, store: RunStore) -> tuple[list[AmplitudePoint], SeriesMetadata]:
    """Load a persisted series with freshly computed metadata.

    Raises:
        RunNotFoundError: If the run has no artifact
        ArtifactParseError: If the artifact is malformed
    """
    return store.read(run_id)


def series_payload(
    run_id: str,
    series: list[AmplitudePoint],
    metadata: SeriesMetadata,
) -> dict[str, Any]:
    """Build the JSON-ready display payload for a loaded run."""
    return {
        "id": run_id,
        "raw_data": [{"Timestamp": p.timestamp, "Amplitude": p.amplitude} for p in series],
        "metadata": {
            "max_amplitude": metadata.max_amplitude,
            "point_count": metadata.point_count,
        },
    }
