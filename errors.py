# errors.py


class VideoSetError(Exception):
    """Base class for errors raised by the dataset/video services."""


class ValidationError(VideoSetError):
    """Malformed request data, rejected before any side effect."""


class StatusTransitionError(ValidationError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move video from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class NotFoundError(VideoSetError):
    def __init__(self, kind: str, ident):
        super().__init__(f"{kind} not found")
        self.kind = kind
        self.ident = ident


class ExtractionError(VideoSetError):
    """ffprobe could not produce usable metadata for a file."""


class ConversionError(VideoSetError):
    """ffmpeg failed to convert one video."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class PreviewError(VideoSetError):
    """A preview frame could not be read from the source file."""
