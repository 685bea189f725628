"""Exceptions raised while resolving and fetching a guest list."""
from typing import Optional


class GuestExportError(Exception):
    """Base class for guest export failures."""


class IdentifierNotFound(GuestExportError):
    """No event identifier could be found on the page."""

    def __init__(self, page_url: Optional[str] = None):
        self.page_url = page_url
        message = "Event ID not found on page"
        if page_url:
            message = f"{message}: {page_url}"
        super().__init__(message)


class ApiError(GuestExportError):
    """Guest list endpoint answered with a non-success status."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"API error: {status_code}")


class MalformedResponse(GuestExportError):
    """Response body does not have the expected structure."""


class NetworkError(GuestExportError):
    """Transport-level failure (connection, timeout)."""


class FetchCancelled(GuestExportError):
    """The fetch session was abandoned before completion."""


class UnsupportedHostError(GuestExportError):
    """Page host does not map to a known API base."""

    def __init__(self, host: str):
        self.host = host
        super().__init__(f"Unsupported host: {host!r}")
