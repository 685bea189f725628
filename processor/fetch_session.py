"""Fetch session orchestrating resolution, pagination and normalization."""
import logging
import threading
from typing import Optional

from processor.errors import (
    ApiError,
    FetchCancelled,
    IdentifierNotFound,
    MalformedResponse,
    NetworkError,
    UnsupportedHostError,
)
from processor.guest_normalizer import GuestNormalizer
from processor.models import FailureKind, SessionResult, SessionState

logger = logging.getLogger(__name__)


NOT_FOUND_MESSAGE = (
    "Event ID not found. Run this on an event page."
)
MALFORMED_MESSAGE = "The guest list response could not be read."
CANCELLED_MESSAGE = "The guest list fetch was cancelled."


class GuestListSession:
    """
    Runs fetch sessions: Idle -> Resolving -> Fetching -> Ready, or Failed.

    Each call to ``run`` is an independent session; no guest data is
    carried over from a previous run. Only one session may be in flight
    at a time: a concurrent ``run`` is ignored, and ``cancel`` abandons
    the in-flight session at the next page boundary.
    """

    def __init__(self, resolver, client, normalizer: Optional[GuestNormalizer] = None):
        """
        Initialize the session runner.

        Args:
            resolver: Object with ``resolve(page_url, html) -> EventReference | None``
            client: Object with ``fetch_all(event_ref, page_url, cancel_event)``
            normalizer: GuestNormalizer (default: new instance)
        """
        self.resolver = resolver
        self.client = client
        self.normalizer = normalizer or GuestNormalizer()
        self._state = SessionState.IDLE
        self._lock = threading.Lock()
        self._cancel_event: Optional[threading.Event] = None

    @property
    def state(self) -> SessionState:
        return self._state

    def run(self, page_url: str, html: Optional[str] = None) -> SessionResult:
        """
        Run one fetch session for an event page.

        Args:
            page_url: Event page URL
            html: Page HTML if already available

        Returns:
            SessionResult in READY or FAILED state; a call made while
            another session is in flight returns the current state with
            no guests
        """
        if not self._lock.acquire(blocking=False):
            logger.warning("Fetch session already in progress, ignoring request")
            return SessionResult(state=self._state)

        self._cancel_event = threading.Event()
        event_ref = None
        try:
            self._state = SessionState.RESOLVING
            logger.info(f"Resolving event reference for {page_url}")
            event_ref = self.resolver.resolve(page_url, html)
            if event_ref is None:
                raise IdentifierNotFound(page_url)

            self._state = SessionState.FETCHING
            entries = self.client.fetch_all(event_ref, page_url, self._cancel_event)
            # cancel() may land while the last page is in flight
            if self._cancel_event.is_set():
                raise FetchCancelled("Guest list fetch was cancelled")
            guests = self.normalizer.normalize_all(entries)

            self._state = SessionState.READY
            if not guests:
                logger.info(f"Event {event_ref.event_id} has no guests")
            else:
                logger.info(f"Event {event_ref.event_id}: {len(guests)} guests ready")
            return SessionResult(
                state=SessionState.READY,
                event_ref=event_ref,
                guests=guests
            )

        except Exception as e:
            kind, message = self.describe_failure(e)
            logger.error(
                f"Fetch session failed: {message}",
                extra={'error_type': type(e).__name__},
                exc_info=kind == FailureKind.UNEXPECTED
            )
            self._state = SessionState.FAILED
            return SessionResult(
                state=SessionState.FAILED,
                event_ref=event_ref,
                failure_kind=kind,
                message=message,
                error=e
            )

        finally:
            self._cancel_event = None
            self._lock.release()

    def cancel(self) -> bool:
        """
        Abandon the in-flight session, discarding partial results.

        Returns:
            True if a session was in flight
        """
        cancel_event = self._cancel_event
        if cancel_event is None:
            return False
        logger.info("Cancelling in-flight fetch session")
        cancel_event.set()
        return True

    @staticmethod
    def describe_failure(error: Exception):
        """
        Map an exception to a failure kind and a user-presentable message.

        Args:
            error: Exception raised during resolving or fetching

        Returns:
            Tuple of (FailureKind, message)
        """
        if isinstance(error, IdentifierNotFound):
            return FailureKind.IDENTIFIER_NOT_FOUND, NOT_FOUND_MESSAGE
        if isinstance(error, ApiError):
            return FailureKind.API_ERROR, str(error)
        if isinstance(error, MalformedResponse):
            return FailureKind.MALFORMED_RESPONSE, MALFORMED_MESSAGE
        if isinstance(error, FetchCancelled):
            return FailureKind.CANCELLED, CANCELLED_MESSAGE
        if isinstance(error, UnsupportedHostError):
            return FailureKind.UNSUPPORTED_HOST, str(error)
        if isinstance(error, NetworkError):
            return FailureKind.NETWORK_ERROR, f"Network error: {error}"
        return FailureKind.UNEXPECTED, f"An error occurred: {error}"
