"""
Error taxonomy for the acquisition and delivery pipeline.

Every failing call site raises the specific subclass, so callers decide on
escalation and user-facing wording from the kind, never from message text.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    NETWORK = "network"
    TIMEOUT = "timeout"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    HTTP_STATUS = "http_status"
    VERIFICATION = "verification"
    NAVIGATION = "navigation"
    RENDER_TIMEOUT = "render_timeout"


class AcquisitionError(Exception):
    """Base class for pipeline failures, carries a kind and a detail string."""

    kind = ErrorKind.NETWORK

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class InvalidInput(AcquisitionError):
    kind = ErrorKind.INVALID_INPUT


class NetworkError(AcquisitionError):
    kind = ErrorKind.NETWORK


class FetchTimeoutError(AcquisitionError):
    kind = ErrorKind.TIMEOUT


class TooManyRedirects(AcquisitionError):
    kind = ErrorKind.TOO_MANY_REDIRECTS


class HttpStatusError(AcquisitionError):
    kind = ErrorKind.HTTP_STATUS

    def __init__(self, status_code: int, detail: str = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(detail or f"HTTP {status_code}", status_code=status_code)
        # decoded JSON error body, when the server sent one
        self.payload = payload or {}


class VerificationFailure(AcquisitionError):
    kind = ErrorKind.VERIFICATION


class NavigationError(AcquisitionError):
    kind = ErrorKind.NAVIGATION


class RenderTimeoutError(AcquisitionError):
    kind = ErrorKind.RENDER_TIMEOUT


class Category(str, Enum):
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    ACCESS_DENIED = "access_denied"
    GENERIC = "generic"


EXPLANATIONS = {
    Category.TIMEOUT: "The request timed out. The file might be too large or the server is slow.",
    Category.UNREACHABLE: "Could not reach the URL. Please check if the link is correct.",
    Category.ACCESS_DENIED: "Access denied or file not found at the URL.",
    Category.GENERIC: "Failed to fetch PDF.",
}


def classify(kind: ErrorKind, status_code: Optional[int] = None) -> Category:
    """Map an error kind (and HTTP status, when known) to a user-facing category."""
    if kind in (ErrorKind.TIMEOUT, ErrorKind.RENDER_TIMEOUT):
        return Category.TIMEOUT
    if kind == ErrorKind.NETWORK:
        return Category.UNREACHABLE
    if kind in (ErrorKind.HTTP_STATUS, ErrorKind.NAVIGATION):
        if status_code is not None and 400 <= status_code < 500:
            return Category.ACCESS_DENIED
    return Category.GENERIC


def explain(kind: ErrorKind, status_code: Optional[int] = None) -> str:
    return EXPLANATIONS[classify(kind, status_code)]
