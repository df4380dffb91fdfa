"""
peakline.config - YAML config loading and validation.

Handles loading peakline.yaml, applying defaults, and validating all
parameters. The core never reads the process environment; callers load a
config once and pass it down explicitly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pydantic
import yaml
from pydantic import BaseModel, Field, field_validator

from peakline.exceptions import ConfigError

CONFIG_FILENAME = "peakline.yaml"

# MP3 windows are sized from these, not from the stream's own header.
DEFAULT_NOMINAL_SAMPLE_RATE = 48000
SAMPLE_WIDTH_BYTES = 2


class DecodeSettings(BaseModel):
    """Settings for the FFmpeg-backed compressed decoder."""

    nominal_sample_rate: int = Field(default=DEFAULT_NOMINAL_SAMPLE_RATE, gt=0)
    channels: int = Field(default=2, ge=1, le=8)
    ffmpeg_binary: str = "ffmpeg"

    @property
    def window_bytes(self) -> int:
        """Bytes per decode window: one nominal second of 16-bit samples."""
        return self.nominal_sample_rate * SAMPLE_WIDTH_BYTES

    @field_validator("ffmpeg_binary")
    @classmethod
    def validate_ffmpeg_binary(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("ffmpeg_binary must not be empty")
        return v


class PeaklineConfig(BaseModel):
    """Resolved configuration for a Peakline storage root."""

    storage_root: Path = Path("uploads")
    artifact_name: str = "output.csv"
    decode: DecodeSettings = Field(default_factory=DecodeSettings)

    @field_validator("artifact_name")
    @classmethod
    def validate_artifact_name(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v or v in {".", ".."}:
            raise ValueError("artifact_name must be a plain file name")
        if not v.endswith(".csv"):
            raise ValueError("artifact_name must end with .csv")
        return v


def find_config_file(start: Path | None = None) -> Path | None:
    """Find peakline.yaml in the start directory or any parent."""
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        if current == current.parent:
            return None
        current = current.parent


def load_config(config_file: Path | None = None) -> PeaklineConfig:
    """Load and validate configuration.

    A relative storage_root is resolved against the config file's directory.
    With no file, defaults are returned.
    """
    if config_file is None:
        return PeaklineConfig()

    if not config_file.exists():
        raise ConfigError(f"Config file not found: {config_file}")

    try:
        with open(config_file, encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Config in {config_file} must be a mapping")

    try:
        config = PeaklineConfig(**raw_config)
    except pydantic.ValidationError as e:
        raise ConfigError(f"Invalid config in {config_file}: {e}") from e

    if not config.storage_root.is_absolute():
        config.storage_root = config_file.parent / config.storage_root
    return config


def create_default_config(storage_root: str = "uploads") -> dict[str, Any]:
    """Create a default config dict for a new storage root."""
    return {
        "storage_root": storage_root,
        "artifact_name": "output.csv",
        "decode": {
            "nominal_sample_rate": DEFAULT_NOMINAL_SAMPLE_RATE,
            "channels": 2,
            "ffmpeg_binary": "ffmpeg",
        },
    }


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
