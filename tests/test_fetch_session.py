"""Unit tests for GuestListSession."""
import json
from unittest.mock import Mock

import pytest
import responses

from processor.errors import ApiError, MalformedResponse, NetworkError, UnsupportedHostError
from processor.fetch_session import GuestListSession
from processor.models import EventReference, FailureKind, SessionState
from scraper.guest_list_client import GuestListClient


PAGE_URL = "https://lu.ma/tech-night"
API_URL = "https://api.lu.ma/event/get-guest-list"


@pytest.fixture
def event_ref():
    return EventReference(event_id='evt-abc123')


@pytest.fixture
def mock_resolver(event_ref):
    resolver = Mock()
    resolver.resolve.return_value = event_ref
    return resolver


@pytest.fixture
def mock_client():
    client = Mock()
    client.fetch_all.return_value = [
        {'user': {'name': 'Alice', 'twitter_handle': 'alice'}},
        {'user': {'name': 'Bob'}},
    ]
    return client


class TestGuestListSession:
    """Test cases for GuestListSession class."""

    def test_initial_state(self, mock_resolver, mock_client):
        assert GuestListSession(mock_resolver, mock_client).state == SessionState.IDLE

    def test_run_ready(self, mock_resolver, mock_client, event_ref):
        """Test a successful session reaches READY with normalized guests."""
        session = GuestListSession(mock_resolver, mock_client)

        result = session.run(PAGE_URL, "<html></html>")

        assert result.state == SessionState.READY
        assert session.state == SessionState.READY
        assert result.event_ref == event_ref
        assert [guest.name for guest in result.guests] == ['Alice', 'Bob']
        assert result.guests[0].twitter == '@alice'
        assert result.failure_kind is None

        mock_resolver.resolve.assert_called_once_with(PAGE_URL, "<html></html>")
        args = mock_client.fetch_all.call_args[0]
        assert args[0] == event_ref
        assert args[1] == PAGE_URL

    def test_run_empty_is_ready(self, mock_resolver, mock_client):
        """Test zero guests is a READY state, not a failure."""
        mock_client.fetch_all.return_value = []

        result = GuestListSession(mock_resolver, mock_client).run(PAGE_URL)

        assert result.state == SessionState.READY
        assert result.guests == ()
        assert result.is_empty

    def test_run_identifier_not_found(self, mock_resolver, mock_client):
        """Test a page without event id fails without fetching."""
        mock_resolver.resolve.return_value = None

        result = GuestListSession(mock_resolver, mock_client).run(PAGE_URL)

        assert result.state == SessionState.FAILED
        assert result.failure_kind == FailureKind.IDENTIFIER_NOT_FOUND
        assert result.message
        assert result.guests == ()
        mock_client.fetch_all.assert_not_called()

    @pytest.mark.parametrize('error, kind', [
        (ApiError(500), FailureKind.API_ERROR),
        (MalformedResponse('bad'), FailureKind.MALFORMED_RESPONSE),
        (NetworkError('down'), FailureKind.NETWORK_ERROR),
        (UnsupportedHostError('example.com'), FailureKind.UNSUPPORTED_HOST),
        (RuntimeError('boom'), FailureKind.UNEXPECTED),
    ])
    def test_run_failures(self, mock_resolver, mock_client, error, kind):
        """Test fetch errors are converted into a single FAILED result."""
        mock_client.fetch_all.side_effect = error
        session = GuestListSession(mock_resolver, mock_client)

        result = session.run(PAGE_URL)

        assert result.state == SessionState.FAILED
        assert session.state == SessionState.FAILED
        assert result.failure_kind == kind
        assert result.error is error
        assert result.guests == ()
        assert result.message

    def test_api_error_message_carries_status(self, mock_resolver, mock_client):
        mock_client.fetch_all.side_effect = ApiError(500)

        result = GuestListSession(mock_resolver, mock_client).run(PAGE_URL)

        assert '500' in result.message

    def test_resolver_error(self, mock_resolver, mock_client):
        """Test errors while resolving also end in FAILED."""
        mock_resolver.resolve.side_effect = NetworkError('page down')

        result = GuestListSession(mock_resolver, mock_client).run(PAGE_URL)

        assert result.failure_kind == FailureKind.NETWORK_ERROR
        mock_client.fetch_all.assert_not_called()

    def test_sessions_are_independent(self, mock_resolver, mock_client):
        """Test a second session does not merge with the first."""
        mock_client.fetch_all.side_effect = [
            [{'user': {'name': 'First'}}],
            [{'user': {'name': 'Second'}}],
        ]
        session = GuestListSession(mock_resolver, mock_client)

        first = session.run(PAGE_URL)
        second = session.run(PAGE_URL)

        assert [guest.name for guest in first.guests] == ['First']
        assert [guest.name for guest in second.guests] == ['Second']

    def test_failed_then_ready(self, mock_resolver, mock_client):
        """Test a failed session can be followed by a successful one."""
        mock_client.fetch_all.side_effect = [ApiError(502), [{'user': {'name': 'A'}}]]
        session = GuestListSession(mock_resolver, mock_client)

        assert session.run(PAGE_URL).state == SessionState.FAILED
        assert session.run(PAGE_URL).state == SessionState.READY

    def test_concurrent_run_ignored(self, mock_resolver, mock_client):
        """Test a run requested while fetching is ignored."""
        session = GuestListSession(mock_resolver, mock_client)
        nested_results = []

        def fetch_all(event_ref, page_url, cancel_event):
            nested_results.append(session.run(PAGE_URL))
            return [{'user': {'name': 'A'}}]

        mock_client.fetch_all.side_effect = fetch_all

        result = session.run(PAGE_URL)

        assert result.state == SessionState.READY
        assert len(nested_results) == 1
        assert nested_results[0].state == SessionState.FETCHING
        assert nested_results[0].guests == ()
        assert mock_client.fetch_all.call_count == 1

    def test_cancel_without_session(self, mock_resolver, mock_client):
        assert GuestListSession(mock_resolver, mock_client).cancel() is False

    @responses.activate
    def test_cancel_discards_partial_results(self, mock_resolver):
        """Test cancelling mid-fetch fails the session with no guests."""
        session = GuestListSession(mock_resolver, GuestListClient())

        def first_page(request):
            assert session.cancel() is True
            body = {'entries': [{'user': {'name': 'A'}}], 'has_more': True, 'next_cursor': 'c1'}
            return (200, {}, json.dumps(body))

        responses.add_callback(responses.GET, API_URL, callback=first_page)

        result = session.run(PAGE_URL)

        assert result.state == SessionState.FAILED
        assert result.failure_kind == FailureKind.CANCELLED
        assert result.guests == ()
        assert len(responses.calls) == 1

    @responses.activate
    def test_cancel_during_last_page(self, mock_resolver):
        """Test cancelling while the final page is in flight still fails the session."""
        session = GuestListSession(mock_resolver, GuestListClient())
        cancel_results = []

        def only_page(request):
            cancel_results.append(session.cancel())
            body = {'entries': [{'user': {'name': 'A'}}], 'has_more': False, 'next_cursor': None}
            return (200, {}, json.dumps(body))

        responses.add_callback(responses.GET, API_URL, callback=only_page)

        result = session.run(PAGE_URL)

        assert cancel_results == [True]
        assert result.state == SessionState.FAILED
        assert session.state == SessionState.FAILED
        assert result.failure_kind == FailureKind.CANCELLED
        assert result.guests == ()
        assert len(responses.calls) == 1

    @responses.activate
    def test_end_to_end_pagination(self, mock_resolver):
        """Test a real client feeding the session across two pages."""
        responses.add(
            responses.GET, API_URL,
            json={'entries': [{'user': {'name': 'A'}}], 'has_more': True, 'next_cursor': 'c1'},
            status=200
        )
        responses.add(
            responses.GET, API_URL,
            json={'entries': [{'user': {'name': 'B', 'instagram_handle': 'b'}}],
                  'has_more': False, 'next_cursor': None},
            status=200
        )

        result = GuestListSession(mock_resolver, GuestListClient()).run(PAGE_URL)

        assert result.state == SessionState.READY
        assert [guest.name for guest in result.guests] == ['A', 'B']
        assert result.guests[1].instagram == '@b'
