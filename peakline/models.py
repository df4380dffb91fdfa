"""
peakline.models - Amplitude series data model.

An amplitude series is a plain list of AmplitudePoint. Summary metadata is
never stored alongside it; compute_metadata derives it from the points.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

Number = int | float


class AmplitudePoint(BaseModel):
    """Peak absolute sample value observed within one time bucket."""

    model_config = ConfigDict(frozen=True)

    timestamp: Number = Field(ge=0)
    amplitude: Number = Field(ge=0)


class SeriesMetadata(BaseModel):
    """Summary values derived from a full scan of a series."""

    max_amplitude: Number = 0
    point_count: int = 0


def compute_metadata(series: Iterable[AmplitudePoint]) -> SeriesMetadata:
    """Scan a series for its maximum amplitude.

    An empty series yields max_amplitude 0.
    """
    max_amplitude: Number = 0
    count = 0
    for point in series:
        count += 1
        if point.amplitude > max_amplitude:
            max_amplitude = point.amplitude
    return SeriesMetadata(max_amplitude=max_amplitude, point_count=count)


def sort_series(series: Iterable[AmplitudePoint]) -> list[AmplitudePoint]:
    """Return the series ordered ascending by timestamp (stable)."""
    return sorted(series, key=lambda p: p.timestamp)
