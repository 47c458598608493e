from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    DEVICE_UNAVAILABLE = "device_unavailable"
    EMPTY_INPUT = "empty_input"
    TRANSPORT = "transport"
    MALFORMED = "malformed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    INVALID_IMAGE = "invalid_image"


class GuideError(Exception):
    """Base exception for the landmark guide."""

    kind: ErrorKind = ErrorKind.TRANSPORT


class DeviceUnavailable(GuideError):
    """Raised when the camera cannot be opened or read."""

    kind = ErrorKind.DEVICE_UNAVAILABLE


class TransportError(GuideError):
    """Raised when the backend call itself fails."""

    kind = ErrorKind.TRANSPORT


class BackendTimeout(TransportError):
    """Raised when the backend does not answer within the configured wait."""

    kind = ErrorKind.TIMEOUT


class MalformedResponse(GuideError):
    """Raised when the backend answer cannot be parsed into the expected contract."""

    kind = ErrorKind.MALFORMED

    def __init__(self, message: str, raw_text: str | None = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text


class InvalidImage(GuideError):
    """Raised when an uploaded file cannot be decoded as a still image."""

    kind = ErrorKind.INVALID_IMAGE
