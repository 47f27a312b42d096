"""
Application exceptions. Per-item failures are caught inside the conversion
and deletion loops; only InvalidInputError and RunInterrupted end a run.
"""


class Flac2Mp3Error(Exception):
    """Base exception for all application-specific errors."""


class InvalidInputError(Flac2Mp3Error):
    """Raised when the input directory or the ffmpeg dependency is unusable."""


class TranscodeError(Flac2Mp3Error):
    """Raised when ffmpeg fails to produce an output file."""

    def __init__(self, message: str, diagnostics: str = ""):
        super().__init__(message)
        self.diagnostics = diagnostics

    @property
    def diagnostic_text(self) -> str:
        """Captured ffmpeg output on one line, or the message if there was none."""
        lines = [line.strip() for line in self.diagnostics.splitlines() if line.strip()]
        return " ".join(lines) if lines else str(self)


class RunInterrupted(Flac2Mp3Error):
    """Raised when a run is cancelled between items."""

    def __init__(self, partial_summary=None):
        super().__init__("run interrupted")
        self.partial_summary = partial_summary
