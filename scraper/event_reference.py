"""Event identifier resolution from Luma event page HTML."""
import json
import logging
import re
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup
import requests

from processor.errors import NetworkError
from processor.models import EventReference

logger = logging.getLogger(__name__)


class NextDataStrategy:
    """Read the event api_id from the Next.js ``__NEXT_DATA__`` payload."""

    name = 'next_data'

    def extract(self, soup: BeautifulSoup, html: str) -> Optional[str]:
        script = soup.find('script', id='__NEXT_DATA__')
        if script is None:
            return None

        try:
            data = json.loads(script.string or script.get_text())
        except ValueError as e:
            logger.warning(f"Failed to parse __NEXT_DATA__: {e}")
            return None

        page_props = self._get(data, 'props', 'pageProps')
        for path in (('event', 'api_id'), ('initialData', 'event', 'api_id')):
            api_id = self._get(page_props, *path)
            if isinstance(api_id, str) and api_id:
                return api_id
        return None

    @staticmethod
    def _get(data, *keys):
        for key in keys:
            if not isinstance(data, dict):
                return None
            data = data.get(key)
        return data


class ApiIdPatternStrategy:
    """Find an ``"api_id": "evt-..."`` pair anywhere in the page."""

    name = 'api_id_pattern'
    PATTERN = re.compile(r'"api_id"\s*:\s*"(evt-[^"]+)"')

    def extract(self, soup: BeautifulSoup, html: str) -> Optional[str]:
        match = self.PATTERN.search(html)
        return match.group(1) if match else None


class ScriptTagStrategy:
    """Take the first ``evt-`` token found inside a script tag."""

    name = 'script_tag'
    PATTERN = re.compile(r'evt-[A-Za-z0-9]+')

    def extract(self, soup: BeautifulSoup, html: str) -> Optional[str]:
        for script in soup.find_all('script'):
            match = self.PATTERN.search(script.get_text())
            if match:
                return match.group(0)
        return None


DEFAULT_STRATEGIES = (NextDataStrategy, ApiIdPatternStrategy, ScriptTagStrategy)


class EventReferenceResolver:
    """Resolves an EventReference from an event page using ordered strategies."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        strategies: Optional[List] = None
    ):
        """
        Initialize the resolver.

        Args:
            session: Session used to download the page when no HTML is given
            timeout: HTTP request timeout in seconds (default: 30)
            strategies: Extraction strategies tried in order
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        if strategies is None:
            strategies = [strategy() for strategy in DEFAULT_STRATEGIES]
        self.strategies = strategies

    def resolve(self, page_url: str, html: Optional[str] = None) -> Optional[EventReference]:
        """
        Resolve the event reference for a page.

        Args:
            page_url: Event page URL; its ``tk`` query parameter is the ticket key
            html: Page HTML; downloaded from page_url when omitted

        Returns:
            EventReference, or None if no strategy finds an event id

        Raises:
            NetworkError: If the page download fails
        """
        if html is None:
            html = self._fetch_page_html(page_url)

        soup = BeautifulSoup(html, 'html.parser')
        for strategy in self.strategies:
            event_id = strategy.extract(soup, html)
            if event_id:
                logger.info(f"Resolved event id {event_id} via {strategy.name}")
                return EventReference(
                    event_id=event_id,
                    ticket_key=self.ticket_key_from_url(page_url)
                )
            logger.debug(f"Strategy {strategy.name} found no event id")

        logger.warning(f"No event id found on page {page_url}")
        return None

    @staticmethod
    def ticket_key_from_url(page_url: str) -> Optional[str]:
        """Return the ``tk`` query parameter of a page URL, if any."""
        values = parse_qs(urlparse(page_url).query).get('tk')
        return values[0] if values else None

    def _fetch_page_html(self, page_url: str) -> str:
        logger.info(f"Fetching event page {page_url}")
        try:
            response = self.session.get(page_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch event page: {e}")
            raise NetworkError(f"Failed to fetch event page: {e}") from e
        return response.text
