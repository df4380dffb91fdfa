"""
peakline.store - Run directories and amplitude series persistence.

Each run owns one directory under the storage root:

    <root>/<run_id>/<uploaded audio>
    <root>/<run_id>/output.csv

The CSV artifact has a fixed "Timestamp,Amplitude" header and one row per
point, sorted by timestamp. Metadata is not persisted; every read rescans
the rows, so what is displayed is always exactly what was written.
"""

from __future__ import annotations

import csv
import io
import math
import re
import shutil
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path, PurePath
from typing import Any, BinaryIO

import numpy as np

from peakline.exceptions import (
    ArtifactParseError,
    PersistenceError,
    RunNotFoundError,
    ValidationError,
)
from peakline.io import write_stream, write_text
from peakline.logging import logger
from peakline.models import (
    AmplitudePoint,
    Number,
    SeriesMetadata,
    compute_metadata,
    sort_series,
)
from peakline.validation import validate_run_id

HEADER = ["Timestamp", "Amplitude"]
DEFAULT_ARTIFACT_NAME = "output.csv"

_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")


def format_number(value: Number) -> str:
    """Format a series value as plain decimal text (never scientific)."""
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        raise ValueError(f"Cannot persist non-finite value: {value}")
    return np.format_float_positional(value, trim="0")


def parse_number(text: str) -> Number:
    """Parse a non-negative decimal field, keeping integers as int."""
    if not _NUMBER_RE.match(text):
        raise ValueError(f"not a non-negative decimal number: {text!r}")
    if "." in text:
        value = float(text)
        if not math.isfinite(value):
            raise ValueError(f"decimal number out of range: {text[:20]}...")
        return value
    return int(text)


def serialize_series(series: Iterable[AmplitudePoint]) -> str:
    """Render a series as CSV text, sorted ascending by timestamp."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(HEADER)
    for point in sort_series(series):
        writer.writerow([format_number(point.timestamp), format_number(point.amplitude)])
    return buffer.getvalue()


def parse_series(lines: Iterable[str], source: str = "<artifact>") -> list[AmplitudePoint]:
    """Parse CSV artifact lines into a series, in file order.

    Raises:
        ArtifactParseError: On a missing or wrong header, a row with the
            wrong number of columns, or a non-numeric or negative field
    """
    reader = csv.reader(lines)
    try:
        header = next(reader, None)
        if header is None:
            raise ArtifactParseError(f"{source}: empty artifact, missing header")
        if header != HEADER:
            raise ArtifactParseError(f"{source}: unexpected header {header!r}, expected {HEADER!r}")

        series = []
        for row in reader:
            if len(row) != len(HEADER):
                raise ArtifactParseError(
                    f"{source}: line {reader.line_num}: expected {len(HEADER)} columns, got {len(row)}"
                )
            try:
                timestamp = parse_number(row[0])
                amplitude = parse_number(row[1])
            except ValueError as e:
                raise ArtifactParseError(f"{source}: line {reader.line_num}: {e}") from e
            series.append(AmplitudePoint(timestamp=timestamp, amplitude=amplitude))
    except csv.Error as e:
        raise ArtifactParseError(f"{source}: line {reader.line_num}: {e}") from e

    return series


class RunStore:
    """Storage root holding one directory per analysis run."""

    def __init__(self, root: Path, artifact_name: str = DEFAULT_ARTIFACT_NAME) -> None:
        self.root = Path(root)
        self.artifact_name = artifact_name

    def run_dir(self, run_id: str) -> Path:
        return self.root / validate_run_id(run_id)

    def artifact_path(self, run_id: str) -> Path:
        return self.run_dir(run_id) / self.artifact_name

    def exists(self, run_id: str) -> bool:
        """Check whether a run has a persisted artifact."""
        return self.artifact_path(run_id).is_file()

    def stage_audio(self, run_id: str, filename: str, source: BinaryIO) -> Path:
        """Copy uploaded audio into the run directory.

        Args:
            run_id: Run identifier
            filename: Original file name; only its final component is kept
            source: Readable binary stream of the audio

        Returns:
            Path of the staged file

        Raises:
            ValidationError: If the file name is unusable
            PersistenceError: If the copy fails
        """
        name = PurePath(filename.replace("\\", "/")).name
        if not name or name == self.artifact_name or name.endswith(".tmp"):
            raise ValidationError(f"Invalid audio file name: {filename!r}")

        path = self.run_dir(run_id) / name
        try:
            size = write_stream(path, source)
        except OSError as e:
            raise PersistenceError(f"Failed to stage {name} for run {run_id}: {e}") from e
        logger.debug("Staged %s (%d bytes) for run %s", name, size, run_id)
        return path

    def write(self, run_id: str, series: Iterable[AmplitudePoint]) -> Path:
        """Persist a series for a run, sorted by timestamp.

        The artifact is replaced atomically; after a failure no artifact
        for this write exists.

        Raises:
            PersistenceError: If the artifact can't be serialized or written
        """
        path = self.artifact_path(run_id)
        try:
            content = serialize_series(series)
            write_text(path, content)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to write artifact for run {run_id}: {e}") from e
        logger.debug("Wrote artifact %s", path)
        return path

    def read(self, run_id: str) -> tuple[list[AmplitudePoint], SeriesMetadata]:
        """Load a run's series and recompute its metadata.

        Raises:
            RunNotFoundError: If the run has no artifact
            ArtifactParseError: If the artifact is malformed
            PersistenceError: If the artifact exists but can't be read
        """
        path = self.artifact_path(run_id)
        try:
            with open(path, encoding="utf-8", newline="") as f:
                series = parse_series(f, source=str(path))
        except FileNotFoundError as e:
            raise RunNotFoundError(run_id) from e
        except UnicodeDecodeError as e:
            raise ArtifactParseError(f"{path}: not valid UTF-8: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to read artifact for run {run_id}: {e}") from e

        return series, compute_metadata(series)

    def discard(self, run_id: str) -> None:
        """Remove a run directory and everything in it."""
        run_dir = self.run_dir(run_id)
        if run_dir.exists():
            shutil.rmtree(run_dir)
            logger.debug("Discarded run %s", run_id)

    def list_runs(self) -> list[dict[str, Any]]:
        """List runs under the storage root, newest first."""
        if not self.root.is_dir():
            return []

        runs = []
        for run_dir in self.root.iterdir():
            if not run_dir.is_dir():
                continue
            audio_files = sorted(
                p.name
                for p in run_dir.iterdir()
                if p.is_file() and p.name != self.artifact_name and p.suffix != ".tmp"
            )
            mtime = run_dir.stat().st_mtime
            runs.append(
                {
                    "id": run_dir.name,
                    "file": audio_files[0] if audio_files else None,
                    "created": datetime.fromtimestamp(mtime).isoformat(timespec="seconds"),
                    "analyzed": (run_dir / self.artifact_name).is_file(),
                    "_mtime": mtime,
                }
            )

        runs.sort(key=lambda r: (r["_mtime"], r["id"]), reverse=True)
        for run in runs:
            del run["_mtime"]
        return runs
