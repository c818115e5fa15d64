from __future__ import annotations

from enum import Enum

from google.genai import errors as genai_errors

__all__ = [
    "StudioError",
    "FetchError",
    "DecodeError",
    "NoImageInResponse",
    "GenerationFailed",
    "NoDownloadLink",
    "VideoDownloadFailed",
    "InvalidCredential",
    "CapabilityUnavailable",
    "GenerationCancelled",
    "PollTimeout",
    "PanelBusy",
    "ErrorKind",
    "classify_error",
]


class StudioError(RuntimeError):
    """Base class for every failure the studio reports to a panel."""


class FetchError(StudioError):
    """Raised when a remote image cannot be fetched."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(StudioError):
    """Raised when input bytes cannot be read or are not image data."""


class NoImageInResponse(StudioError):
    """Raised when an edit response carries no inline image part."""


class GenerationFailed(StudioError):
    """Raised when text-to-image returns zero images."""


class NoDownloadLink(StudioError):
    """Raised when a finished video operation has no result URI."""


class VideoDownloadFailed(StudioError):
    """Raised when the signed video link cannot be fetched."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidCredential(StudioError):
    """Raised when the service rejects the selected API key."""


class CapabilityUnavailable(StudioError):
    """Raised when the host cannot prompt for an API key."""


class GenerationCancelled(StudioError):
    """Raised when a video job is cancelled before it finishes."""


class PollTimeout(StudioError):
    """Raised when a configured poll ceiling is exceeded."""


class PanelBusy(StudioError):
    """Raised when a panel already has a request in flight."""


class ErrorKind(str, Enum):
    INVALID_CREDENTIAL = "invalid_credential"
    CANCELLED = "cancelled"
    GENERIC = "generic"


# Status values the Gemini API uses when a key cannot see the requested model.
_CREDENTIAL_STATUSES = frozenset({"NOT_FOUND"})
_CREDENTIAL_CODES = frozenset({404})


def classify_error(exc: BaseException) -> ErrorKind:
    """Map a failure raised during generation onto the kind a panel reacts to."""

    if isinstance(exc, InvalidCredential):
        return ErrorKind.INVALID_CREDENTIAL
    if isinstance(exc, GenerationCancelled):
        return ErrorKind.CANCELLED

    if isinstance(exc, genai_errors.APIError):
        status = str(getattr(exc, "status", "") or "").upper()
        if getattr(exc, "code", None) in _CREDENTIAL_CODES or status in _CREDENTIAL_STATUSES:
            return ErrorKind.INVALID_CREDENTIAL
    cause = exc.__cause__
    if cause is not None and cause is not exc:
        return classify_error(cause)
    return ErrorKind.GENERIC
