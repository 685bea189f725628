"""Client for the Luma cursor-paginated guest list endpoint."""
import logging
import threading
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from processor.errors import (
    ApiError,
    FetchCancelled,
    MalformedResponse,
    NetworkError,
    UnsupportedHostError,
)
from processor.models import EventReference

logger = logging.getLogger(__name__)


API_BASES = {
    'lu.ma': 'https://api.lu.ma',
    'luma.com': 'https://api2.luma.com',
    'www.luma.com': 'https://api2.luma.com',
}


def api_base_for_host(host: str) -> str:
    """
    Select the API base URL for an event page host.

    Args:
        host: Hostname of the event page (e.g. "lu.ma")

    Returns:
        API base URL without trailing slash

    Raises:
        UnsupportedHostError: If the host is not a known Luma host
    """
    normalized = (host or '').lower().split(':')[0]
    try:
        return API_BASES[normalized]
    except KeyError:
        raise UnsupportedHostError(host)


class GuestListClient:
    """Fetches every guest entry for an event, page by page."""

    GUEST_LIST_PATH = '/event/get-guest-list'
    PAGE_LIMIT = 100
    CLIENT_TYPE = 'luma-web'

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        max_pages: int = 1000
    ):
        """
        Initialize the guest list client.

        Args:
            session: Session carrying the caller's cookies (default: new one)
            timeout: HTTP request timeout in seconds (default: 30)
            max_pages: Safety cap on pages per fetch (default: 1000)
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_pages = max_pages

    def fetch_all(
        self,
        event_ref: EventReference,
        page_url: str,
        cancel_event: Optional[threading.Event] = None
    ) -> List[Dict[str, Any]]:
        """
        Fetch all guest entries by following pagination cursors.

        Pages are requested strictly one after another, each with the
        cursor returned by the previous page. Nothing is returned unless
        every page succeeds.

        Args:
            event_ref: Resolved event reference
            page_url: URL of the event page, sent as the originating page
            cancel_event: Checked before each request; abort when set

        Returns:
            Raw guest entries in the order the API returned them

        Raises:
            ApiError: On a non-success HTTP status
            MalformedResponse: On an unparseable body or runaway pagination
            NetworkError: On connection failures and timeouts
            FetchCancelled: If cancel_event was set mid-fetch
        """
        url = api_base_for_host(urlparse(page_url).hostname) + self.GUEST_LIST_PATH
        entries: List[Dict[str, Any]] = []
        cursor = None
        has_more = True
        page = 0

        logger.info(f"Fetching guest list for event {event_ref.event_id}")

        while has_more:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    f"Fetch cancelled after {page} pages, discarding "
                    f"{len(entries)} entries"
                )
                raise FetchCancelled("Guest list fetch was cancelled")

            if page >= self.max_pages:
                raise MalformedResponse(
                    f"Pagination did not finish within {self.max_pages} pages"
                )

            page += 1
            body = self._fetch_page(url, event_ref, cursor, page_url, page)

            page_entries = body.get('entries')
            if page_entries is None:
                page_entries = []
            if not isinstance(page_entries, list):
                raise MalformedResponse(
                    f"'entries' is {type(page_entries).__name__}, expected list"
                )
            entries.extend(page_entries)

            has_more = bool(body.get('has_more'))
            cursor = body.get('next_cursor')
            if has_more and not cursor:
                raise MalformedResponse(
                    "Response reports more pages but has no next_cursor"
                )

            logger.debug(
                f"Page {page}: {len(page_entries)} entries, has_more={has_more}"
            )

        logger.info(
            f"Fetched {len(entries)} guest entries in {page} pages"
        )
        return entries

    def build_params(
        self,
        event_ref: EventReference,
        cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Build query parameters for one guest list page.

        Args:
            event_ref: Resolved event reference
            cursor: Cursor from the previous page, None for the first page

        Returns:
            Query parameter dict
        """
        params = {
            'event_api_id': event_ref.event_id,
            'pagination_limit': self.PAGE_LIMIT
        }
        if event_ref.ticket_key:
            params['ticket_key'] = event_ref.ticket_key
        if cursor:
            params['pagination_cursor'] = cursor
        return params

    def _fetch_page(
        self,
        url: str,
        event_ref: EventReference,
        cursor: Optional[str],
        page_url: str,
        page: int
    ) -> Dict[str, Any]:
        """
        Request a single page and decode its JSON body.

        Raises:
            ApiError: On a non-success HTTP status
            MalformedResponse: If the body is not a JSON object
            NetworkError: On transport failure
        """
        headers = {
            'Accept': '*/*',
            'x-luma-client-type': self.CLIENT_TYPE,
            'x-luma-web-url': page_url
        }

        logger.info(f"Fetching guest list page {page}")
        try:
            response = self.session.get(
                url,
                params=self.build_params(event_ref, cursor),
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Request for page {page} failed: {e}")
            raise NetworkError(str(e)) from e

        if not response.ok:
            logger.error(
                f"Guest list endpoint returned HTTP {response.status_code} "
                f"for page {page}"
            )
            raise ApiError(response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Response body is not JSON: {e}") from e

        if not isinstance(body, dict):
            raise MalformedResponse(
                f"Response body is {type(body).__name__}, expected object"
            )
        return body
