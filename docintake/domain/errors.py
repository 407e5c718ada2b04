"""
Exception taxonomy for the intake pipeline.

Inside a batch every per-item failure is folded into the summary counts.
Outside a batch, DecodeError, EncodeError and ValidationError reach the caller.
"""
from typing import Optional


class DocIntakeError(Exception):
    """Base exception for intake pipeline errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class DecodeError(DocIntakeError):
    """Raised when asset bytes cannot be interpreted as a raster image."""


class EncodeError(DocIntakeError):
    """Raised when a drawing surface or its encoded buffer cannot be produced."""


class ValidationError(DocIntakeError):
    """Raised when a crop rectangle or edit parameter is malformed."""


class DetectionTransportError(DocIntakeError):
    """Raised inside the detection client on network or service failure.

    Never leaves the client: it is converted into a failed DetectionResult.
    """


class AssetBusyError(DocIntakeError):
    """Raised when an asset slot already has an operation in flight."""


class HandleReleasedError(DocIntakeError):
    """Raised when reading from a preview handle that was already released."""
