"""
peakline.exceptions - Custom exception classes.

All Peakline-specific exceptions inherit from PeaklineError.
"""


class PeaklineError(Exception):
    """Base exception for all Peakline errors."""

    pass


class ConfigError(PeaklineError):
    """Configuration loading or validation error."""

    pass


class ExtractionError(PeaklineError):
    """Audio decoding or peak extraction error."""

    pass


class UnsupportedFormatError(ExtractionError):
    """File extension or format tag not handled by any decoder."""

    def __init__(self, fmt: str):
        self.format = fmt
        super().__init__(f"Unsupported audio format: {fmt or '(none)'}")


class InvalidContainerError(ExtractionError):
    """Audio container failed structural validation."""

    pass


class DecodeIOError(ExtractionError):
    """Byte source or decoder failed mid-read."""

    pass


class StoreError(PeaklineError):
    """Run storage error."""

    pass


class PersistenceError(StoreError):
    """Artifact could not be created or written."""

    pass


class RunNotFoundError(StoreError):
    """No artifact exists for the requested run."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


class ArtifactParseError(StoreError):
    """Persisted artifact is malformed."""

    pass


class ValidationError(PeaklineError):
    """Data validation error."""

    pass


class DependencyError(PeaklineError):
    """Required dependency missing or misconfigured."""

    def __init__(self, dependency: str, message: str, install_hint: str | None = None):
        self.dependency = dependency
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{dependency}: {message}")
